"""
Cache Module - In-memory store of course indexes.
=================================================

Process-lifetime only; nothing is written to disk. Staleness is measured
from each index's ``last_scanned`` against an injectable clock.
"""

from datetime import datetime
from typing import Callable, Iterator, Optional

from coursescout.shared.config import get_settings
from coursescout.shared.logging import get_logger
from coursescout.shared.schemas import CourseIndex, utc_now

logger = get_logger(__name__)


class DiscoveryCache:
    """
    Course id to CourseIndex map with a time-to-live.

    Example:
        >>> cache = DiscoveryCache(ttl_seconds=3600)
        >>> cache.set_cached_discovery("42", index)
        >>> cache.get_cached_discovery("42") is index
        True
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Entry lifetime (defaults to the configured TTL)
            clock: Returns the current aware datetime
        """
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None else get_settings().get_effective_cache_ttl()
        )
        self.clock = clock
        self._entries: dict[str, CourseIndex] = {}

    def now(self) -> datetime:
        return self.clock()

    def age_seconds(self, index: CourseIndex) -> float:
        """Seconds since the index was built."""
        return (self.now() - index.last_scanned).total_seconds()

    def is_fresh(self, index: CourseIndex) -> bool:
        return self.age_seconds(index) < self.ttl_seconds

    def get_cached_discovery(self, course_id: str) -> Optional[CourseIndex]:
        """
        Get a fresh cached index.

        Stale entries are evicted and reported as a miss.
        """
        key = str(course_id)
        index = self._entries.get(key)
        if index is None:
            return None
        if not self.is_fresh(index):
            logger.debug(f"Cache entry for course {key} expired")
            del self._entries[key]
            return None
        return index

    def set_cached_discovery(self, course_id: str, index: CourseIndex) -> None:
        """Store an index, replacing any previous entry."""
        self._entries[str(course_id)] = index

    def clear_discovery_cache(self, course_id: Optional[str] = None) -> int:
        """
        Remove one course's entry, or all entries.

        Returns:
            Number of entries removed
        """
        if course_id is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed
        return 1 if self._entries.pop(str(course_id), None) is not None else 0

    def entries(self) -> Iterator[tuple[str, CourseIndex]]:
        """Iterate over fresh entries."""
        for key, index in list(self._entries.items()):
            if self.is_fresh(index):
                yield key, index

    def __len__(self) -> int:
        return sum(1 for _ in self.entries())

    def __contains__(self, course_id: object) -> bool:
        return self.get_cached_discovery(str(course_id)) is not None
