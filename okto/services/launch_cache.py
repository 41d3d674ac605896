"""Shared cache of upcoming launches"""
import threading
from typing import Iterable, Optional, Tuple

from ..storage.models import LaunchRecord
from ..utils.logger import setup_logger

logger = setup_logger(__name__)


class LaunchCache:
    """
    Ordered, replace-only collection of LaunchRecord objects

    The poller publishes a whole new generation with replace(); readers get
    the tuple of exactly one generation from snapshot(). Tuples are never
    modified after publication, so a snapshot stays valid while newer
    generations are published.
    """

    def __init__(self, records: Iterable[LaunchRecord] = ()):
        self._lock = threading.Lock()
        self._records: Tuple[LaunchRecord, ...] = ()
        self._generation = 0
        if records:
            self.replace(records)

    def snapshot(self) -> Tuple[LaunchRecord, ...]:
        """Get the current generation, ordered by net"""
        with self._lock:
            return self._records

    def replace(self, records: Iterable[LaunchRecord]) -> int:
        """
        Publish a new generation of launches

        Records sharing an ll_id are collapsed, the last one wins.

        Args:
            records: Launch records from one provider poll

        Returns:
            The new generation number
        """
        by_id = {}
        for record in records:
            by_id[record.ll_id] = record
        published = tuple(sorted(by_id.values(), key=lambda r: (r.net, r.ll_id)))

        with self._lock:
            self._records = published
            self._generation += 1
            generation = self._generation

        logger.debug(f"Published launch cache generation {generation} ({len(published)} launches)")
        return generation

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def get(self, ll_id: str) -> Optional[LaunchRecord]:
        for record in self.snapshot():
            if record.ll_id == ll_id:
                return record
        return None

    def __len__(self) -> int:
        return len(self.snapshot())
