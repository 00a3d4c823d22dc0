"""Per-report latch that keeps saves from interleaving."""

from contextlib import contextmanager
from typing import Iterator, Set

from report_sync.utils.logging import get_logger

LOGGER = get_logger(__name__)


class SaveGuard:
    """Tracks which reports have a save in flight.

    ``begin_save`` fails fast instead of waiting: a debounced autosave that
    arrives while a user-initiated save is running is simply dropped.
    """

    def __init__(self):
        self._in_flight: Set[str] = set()

    def begin_save(self, report_id: str) -> bool:
        """Set the latch for a report.

        Returns:
            False, without side effects, if a save is already in flight
        """
        if report_id in self._in_flight:
            LOGGER.info(f"Save already in progress, rejecting: report_id={report_id}")
            return False
        self._in_flight.add(report_id)
        return True

    def end_save(self, report_id: str) -> None:
        self._in_flight.discard(report_id)

    def is_saving(self, report_id: str) -> bool:
        return report_id in self._in_flight

    @contextmanager
    def hold(self, report_id: str) -> Iterator[bool]:
        """Context manager form: yields whether the latch was acquired.

        The latch is released on exit only when this block acquired it.
        """
        acquired = self.begin_save(report_id)
        try:
            yield acquired
        finally:
            if acquired:
                self.end_save(report_id)
