"""Discover PacBio Revio runs and copy their HiFi reads per biosample."""

__version__ = "0.3.0"
