"""CARA legal assistant backend."""

__version__ = "1.0.0"
