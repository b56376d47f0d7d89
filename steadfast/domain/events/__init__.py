"""Domain Event definitions.

Represents significant occurrences during outbound calls that other parts
of the system might react to (metrics, audit logs, tests).
"""
