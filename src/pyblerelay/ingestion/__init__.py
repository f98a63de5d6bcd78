"""Ingestion layer.

Converts sensor-adapter readings (location fixes, overheard beacon
adverts) into normalized events, dropping malformed data before it can
reach the delivery client or the state store.
"""

__all__: list[str] = []
