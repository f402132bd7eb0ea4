"""Version information for identity-group-sync."""

__version__ = "0.1.0"
