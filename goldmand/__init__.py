"""Goldmand WAX mining bot."""

__version__ = "1.0.0"
