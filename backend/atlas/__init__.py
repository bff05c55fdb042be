"""Tabletop Atlas — board game rules management and rules chat backend."""

__version__ = "0.1.0"
