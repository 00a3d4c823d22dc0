"""TTL cache of fully loaded reports.

The cache is an optimization only: every mutation is persisted first, and a
miss always falls back to loading the stored document. Stored reports are
copies, so later edits to the caller's object never reach the cache.
Instances are created by the caller and passed in, so tests get isolated
caches.
"""

import copy
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from report_sync.schemas.report import PropertySnapshot, Report
from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_MAX_ENTRIES = 256


@dataclass
class CacheEntry:
    report: Report
    property: Optional[PropertySnapshot]
    timestamp: float


class ReportCache:
    """Report snapshots keyed by report id, bounded by age and size."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def get(self, report_id: str) -> Optional[CacheEntry]:
        """Return a live entry, evicting it if its age has reached the TTL."""
        entry = self._entries.get(report_id)
        if entry is None:
            return None

        if self._is_expired(entry):
            del self._entries[report_id]
            LOGGER.debug(f"Cache entry expired: report_id={report_id}")
            return None

        return entry

    def set(
        self,
        report_id: str,
        report: Report,
        property: Optional[PropertySnapshot] = None,
    ) -> None:
        """Store a copy of a report, replacing any existing entry."""
        self._entries.pop(report_id, None)
        self._entries[report_id] = CacheEntry(
            report=report.model_copy(deep=True), property=property, timestamp=self._clock()
        )
        self._evict_overflow()

    def update(self, report_id: str, changes: Dict[str, Any]) -> bool:
        """Shallow-merge changes into a cached report and refresh its timestamp.

        Only called after the corresponding write succeeded. A miss is a
        no-op; the next read reloads from storage.

        Returns:
            True if an entry was updated
        """
        entry = self.get(report_id)
        if entry is None:
            return False

        entry.report = entry.report.model_copy(update=copy.deepcopy(changes))
        entry.timestamp = self._clock()
        self._entries.move_to_end(report_id)
        return True

    def invalidate(self, report_id: Optional[str] = None) -> None:
        """Drop one entry, or every entry when no id is given."""
        if report_id is None:
            self._entries.clear()
            LOGGER.debug("Report cache cleared")
        else:
            self._entries.pop(report_id, None)

    def __contains__(self, report_id: str) -> bool:
        return self.get(report_id) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp >= self.ttl_seconds

    def _evict_overflow(self) -> None:
        while len(self._entries) > self.max_entries:
            report_id, _ = self._entries.popitem(last=False)
            LOGGER.debug(f"Cache full, evicted report_id={report_id}")
