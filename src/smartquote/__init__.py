"""Quote line-item resolution and calculation engine."""

__version__ = "0.3.0"

__all__ = ["__version__"]
