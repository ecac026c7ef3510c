"""Command-line interface for the Brokex keeper."""

__version__ = "0.1.0"
