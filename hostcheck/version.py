"""Version information for hostcheck."""

__version__ = "1.0.0"
