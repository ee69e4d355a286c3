"""Command line client for the Metal Cloud infrastructure management platform."""

__version__ = "0.1.0"
