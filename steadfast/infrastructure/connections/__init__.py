"""Connections to networked services shared by storage and cache tiers."""
