"""Hearthlight productivity assistant."""

__version__ = "0.1.0"
