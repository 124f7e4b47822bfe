"""
Short-lived in-memory cache of scraped rows, keyed by (ticker, strike).

A multi-strike surface build scrapes one page per strike, and the same
strikes get asked for again as the user moves around. Entries expire a
fixed time after insertion; an expired entry is a miss and is evicted
on read. Nothing is persisted.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from . import config
from .parsing import OptionRow

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, Optional[float]]


@dataclass(frozen=True)
class CacheEntry:
    rows: List[OptionRow]
    timestamp: float
    strikes: List[float] = field(default_factory=list)


class SnapshotCache:
    """
    TTL cache for scraped option rows.

    Parameters
    ----------
    ttl_seconds : entry lifetime (default: config.CACHE_TTL_SECONDS)
    clock : time source in seconds (default: time.time)
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Optional[Callable[[], float]] = None):
        self.ttl_seconds = config.CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock or time.time
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(ticker: str, strike: Optional[float] = None) -> CacheKey:
        return ticker, (None if strike is None else float(strike))

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp > self.ttl_seconds

    def get(self, ticker: str, strike: Optional[float] = None) -> Optional[CacheEntry]:
        """Entry for (ticker, strike), or None if absent or expired."""
        key = self._key(ticker, strike)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry, self._clock()):
                del self._entries[key]
                logger.debug("cache expired ticker=%s strike=%s", ticker, strike)
                return None
            return entry

    def set(
        self,
        ticker: str,
        strike: Optional[float],
        rows: Sequence[OptionRow],
        strikes: Sequence[float] = (),
    ) -> None:
        """Store rows (and the strikes discovered alongside them)."""
        entry = CacheEntry(rows=list(rows), timestamp=self._clock(), strikes=list(strikes))
        with self._lock:
            self._entries[self._key(ticker, strike)] = entry

    def get_all_for_ticker(self, ticker: str) -> Dict[float, List[OptionRow]]:
        """{strike: rows} for every live, non-empty per-strike entry of a ticker."""
        now = self._clock()
        with self._lock:
            return {
                strike: entry.rows
                for (t, strike), entry in self._entries.items()
                if t == ticker and strike is not None
                and entry.rows and not self._expired(entry, now)
            }

    def cached_strike_count(self, ticker: str) -> int:
        with self._lock:
            return sum(1 for t, strike in self._entries if t == ticker and strike is not None)

    def clear(self, ticker: Optional[str] = None) -> None:
        """Drop everything, or only one ticker's entries."""
        with self._lock:
            if ticker is None:
                self._entries.clear()
                return
            for key in [k for k in self._entries if k[0] == ticker]:
                del self._entries[key]
