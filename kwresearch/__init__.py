"""Keyword research service: related-keyword discovery enriched with paid-search metrics."""

__version__ = "1.0.0"
