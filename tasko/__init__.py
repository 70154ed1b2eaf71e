"""Tasko - a terminal client for the Tasko todo and shop API."""

__version__ = "0.1.0"
