"""Ingestion layer.

This package turns raw COtrip feed records into normalized map entities.
"""

__all__: list[str] = []
