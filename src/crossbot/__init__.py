"""Signal-driven single-instrument trading controller."""

__version__ = "0.1.0"
