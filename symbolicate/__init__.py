"""Symbolicate crash logs with dSYM files via atos."""

__version__ = "0.1.0"
