"""oken - a smarter front-end for ssh."""

__version__ = "0.3.0"
