"""Ingestion layer.

Adapters that turn raw broker messages into normalized tag reads.
"""

__all__: list[str] = []
