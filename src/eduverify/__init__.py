"""Offline-capable reward redemption verification."""

__version__ = "0.1.0"
