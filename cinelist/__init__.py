"""CineList: harvest cinema listings into an enriched film catalog."""

__version__ = "0.1.0"
