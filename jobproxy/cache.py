"""
In-memory cache of the full job listing.

A JobSnapshot is built once from a successful bulk fetch and never
modified afterwards. Publishing a new one is a single reference
assignment, so readers holding the old snapshot keep a consistent view
while a refresh runs.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

from .credentials import utcnow
from .logger import get_logger

logger = get_logger()

CACHE_TTL = timedelta(minutes=30)


@dataclass(frozen=True)
class JobSnapshot:
    records: Tuple[Dict[str, Any], ...]
    captured_at: datetime
    source_page_count: int
    source_total_count: int
    failed_pages: Tuple[int, ...] = ()

    def __len__(self) -> int:
        return len(self.records)

    def age(self, now: datetime) -> timedelta:
        return now - self.captured_at


class JobCache:
    """Holds the last published JobSnapshot and rebuilds it through a fetcher."""

    def __init__(
        self,
        fetcher,
        ttl: timedelta = CACHE_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.fetcher = fetcher
        self.ttl = ttl
        self.clock = clock
        self._snapshot: Optional[JobSnapshot] = None
        self._refresh_lock = threading.Lock()

    @property
    def snapshot(self) -> Optional[JobSnapshot]:
        """Last published snapshot, fresh or stale."""
        return self._snapshot

    def is_valid(self) -> bool:
        return self._is_fresh(self._snapshot)

    def _is_fresh(self, snapshot: Optional[JobSnapshot]) -> bool:
        return snapshot is not None and snapshot.age(self.clock()) < self.ttl

    def get_or_refresh(self) -> JobSnapshot:
        """Return a fresh snapshot, rebuilding it if needed.

        Concurrent callers that find the cache stale share one bulk fetch.

        Raises:
            UpstreamError / AuthFailure: If the rebuild fails; the previous
                snapshot stays published
        """
        snapshot = self._snapshot
        if self._is_fresh(snapshot):
            logger.debug("Using cached jobs data", records=len(snapshot))
            logger.record_cache_hit()
            return snapshot

        with self._refresh_lock:
            snapshot = self._snapshot
            if self._is_fresh(snapshot):
                logger.record_cache_hit()
                return snapshot
            logger.info("Cache invalid or empty, fetching all jobs")
            return self._rebuild()

    def refresh(self) -> JobSnapshot:
        """Rebuild unconditionally (used to keep the cache warm)."""
        with self._refresh_lock:
            return self._rebuild()

    def _rebuild(self) -> JobSnapshot:
        bulk = self.fetcher.fetch_all()
        snapshot = JobSnapshot(
            records=tuple(bulk.records),
            captured_at=self.clock(),
            source_page_count=bulk.page_count,
            source_total_count=bulk.total_count,
            failed_pages=tuple(bulk.failed_pages),
        )
        self._snapshot = snapshot
        logger.record_cache_refresh()
        logger.info(
            f"Cached {len(snapshot)} jobs from {snapshot.source_page_count} pages",
            failed_pages=list(snapshot.failed_pages),
        )
        return snapshot
