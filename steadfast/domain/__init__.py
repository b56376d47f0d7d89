"""Domain Layer: value objects, ports and events shared by all contexts."""
