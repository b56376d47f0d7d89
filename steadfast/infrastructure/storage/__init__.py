"""State Persistence Implementations.

Contains the single-slot backends (Redis, diskcache, JSON file) and the
TieredStore that picks one of them at startup.
Bounded Context: State Persistence
"""
