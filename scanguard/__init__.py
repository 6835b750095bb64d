"""Interactive monitor for file changes, suspicious processes and network floods."""

__version__ = "0.1.0"