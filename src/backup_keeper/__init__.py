"""Schedule-driven backups of application state (database, monitoring data, logs)."""

__version__ = "0.1.0"
