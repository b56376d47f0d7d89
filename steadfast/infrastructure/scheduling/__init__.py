"""Periodic Job Scheduling.

Runs named maintenance jobs on fixed intervals with per-job failure
isolation.
Bounded Context: Maintenance Scheduling
"""
