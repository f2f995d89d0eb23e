"""Upto Date API - location-aware daily topic feed."""

__version__ = "0.1.0"
