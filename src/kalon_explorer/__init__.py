# src/kalon_explorer/__init__.py
"""Read-only explorer client for the Kalon network."""

__version__ = "0.1.0"
