"""Domain models: typed aliases and dictionaries shared across components."""
