"""Domain Interfaces (Ports):

Defines the contracts (Abstract Base Classes) that storage and cache tiers
must implement. The components depend on these interfaces, not on Redis,
diskcache or the file system directly.
"""
