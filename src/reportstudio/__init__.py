"""Reporting Studio natural-language query engine."""

__version__ = "0.1.0"
