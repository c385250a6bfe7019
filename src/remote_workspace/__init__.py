"""Remote workspace daemon."""

__version__ = "0.1.0"
