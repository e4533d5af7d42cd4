"""Ingestion layer.

This package turns raw store records into materialized entities and hosts the
lenient date helpers the rest of the library shares.
"""

__all__: list[str] = []
