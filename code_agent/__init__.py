"""Command-line coding agent driving Claude with local file tools."""

__version__ = "0.1.0"
