"""Chocomenta Radio - a shared listen-together radio server."""

__version__ = "1.0.0"
