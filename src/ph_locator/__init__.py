"""Philippine address location resolver."""

__version__ = "0.1.0"
