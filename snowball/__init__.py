"""Snowball: a month-by-month personal finance simulation engine."""

__version__ = "0.1.0"
