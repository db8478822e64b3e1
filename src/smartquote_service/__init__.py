"""HTTP surface for SmartQuote resolution, calculation and catalogue learning."""

from .app import create_app

__all__ = ["create_app"]
