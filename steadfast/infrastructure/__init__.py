"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (HTTP APIs, Redis, local disk)
by implementing the interfaces defined in the domain layer. Also includes
configuration, logging and the periodic job scheduler.
"""
