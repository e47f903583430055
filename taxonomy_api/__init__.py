"""Category taxonomy and dynamic filter-assignment service."""

__version__ = "0.1.0"
