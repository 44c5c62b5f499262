# src/s3wire/region_cache.py
"""Per-client bucket -> region map."""

from __future__ import annotations

import logging
import threading


_logger = logging.getLogger(__name__)


class RegionCache:
    """
    Thread-safe bucket -> region mapping.

    The lock only guards single dictionary operations; discovery itself runs
    outside it, so concurrent discoveries of one bucket may both write. Both
    write the same region, so the last write wins harmlessly.
    """

    def __init__(self) -> None:
        self._regions: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, bucket: str) -> str | None:
        with self._lock:
            return self._regions.get(bucket)

    def set(self, bucket: str, region: str) -> None:
        with self._lock:
            self._regions[bucket] = region
        _logger.debug("Cached region %s for bucket %s", region, bucket)

    def invalidate(self, bucket: str) -> bool:
        """Drop the entry for ``bucket``; returns whether one existed."""
        with self._lock:
            removed = self._regions.pop(bucket, None)
        if removed is not None:
            _logger.debug("Invalidated cached region %s for bucket %s", removed, bucket)
        return removed is not None

    def clear(self) -> None:
        with self._lock:
            self._regions.clear()

    def __contains__(self, bucket: object) -> bool:
        with self._lock:
            return bucket in self._regions

    def __len__(self) -> int:
        with self._lock:
            return len(self._regions)
