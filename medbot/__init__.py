"""MedBot drug-safety lookup core: openFDA queries with a local SQLite cache."""

__version__ = "1.0.0"
