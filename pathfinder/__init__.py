"""Pathfinder - warm-intro path discovery over a relationship graph."""

__version__ = "0.1.0"
