"""Logging setup and log file maintenance."""
