"""Core synchronization engine."""
