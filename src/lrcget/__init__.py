"""LRCGET: mass-download synced lyrics for a local music library."""

__version__ = "0.1.0"
