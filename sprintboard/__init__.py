"""Data-access core for the project-tracking dashboard."""

__version__ = "0.1.0"
