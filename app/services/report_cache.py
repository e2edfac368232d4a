# app/services/report_cache.py
"""
Report Cache — non-authoritative, time-unbounded snapshots of report listings.

Entries are keyed by (category, key). The cache never takes part in a write:
a single SQLAlchemy after_commit hook invalidates it once a transaction that
touched alerts / rescue forms / post-rescue forms has committed.
"""

import copy
import threading
from itertools import chain
from typing import Any, Callable, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from app.utils.logger import get_logger

logger = get_logger(__name__)

PENDING = "pending"
COMPLETED = "completed"
ARCHIVED = "archived"
AGGREGATED = "aggregated"
AGGREGATED_TABLE = "aggregatedTable"
CHART = "chart"
CATEGORIES = (PENDING, COMPLETED, ARCHIVED, AGGREGATED, AGGREGATED_TABLE, CHART)

ALL = "all"

# Tables whose mutation makes every report snapshot suspect
REPORT_TABLES = frozenset({"alerts", "rescue_forms", "post_rescue_forms"})

_DIRTY_FLAG = "report_cache_dirty"


class ReportCache:
    def __init__(self):
        self._entries: dict[tuple[str, str], Any] = {}
        self._lock = threading.RLock()
        # Bumped by every invalidate(); a load that straddles one is not stored
        self._generation = 0
        self.hits = 0
        self.misses = 0

    def get(self, category: str, key: str = ALL) -> Optional[Any]:
        with self._lock:
            value = self._entries.get((category, key))
            if value is None:
                self.misses += 1
                return None
            self.hits += 1
            return copy.deepcopy(value)

    def set(self, category: str, value: Any, key: str = ALL) -> None:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown report cache category: {category}")
        with self._lock:
            self._entries[(category, key)] = copy.deepcopy(value)

    def get_or_load(self, category: str, loader: Callable[[], Any],
                    key: str = ALL, refresh: bool = False) -> Any:
        """
        Cache-first read. refresh=True skips the cached snapshot for this call
        only and re-seeds the entry with the fresh result.
        """
        if category not in CATEGORIES:
            raise ValueError(f"Unknown report cache category: {category}")
        if not refresh:
            cached = self.get(category, key)
            if cached is not None:
                return cached

        with self._lock:
            generation = self._generation
        value = loader()
        with self._lock:
            if self._generation == generation:
                self._entries[(category, key)] = copy.deepcopy(value)
            else:
                logger.debug(f"[Cache] Discarded {category}/{key} load, a write committed mid-load")
        return value

    def invalidate(self, category: Optional[str] = None, key: Optional[str] = None) -> int:
        """
        The single invalidation entry point.
        No category → everything; category only → every key in it; both → one entry.
        Returns the number of entries dropped.
        """
        with self._lock:
            self._generation += 1
            if category is None:
                dropped = len(self._entries)
                self._entries.clear()
            else:
                doomed = [k for k in self._entries
                          if k[0] == category and (key is None or k[1] == key)]
                for k in doomed:
                    del self._entries[k]
                dropped = len(doomed)
        if dropped:
            logger.debug(f"[Cache] Invalidated {dropped} entr{'y' if dropped == 1 else 'ies'} "
                         f"(category={category or '*'}, key={key or '*'})")
        return dropped

    def clear(self) -> int:
        return self.invalidate()

    def stats(self) -> dict:
        with self._lock:
            return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}


report_cache = ReportCache()


# ── Post-commit hook ─────────────────────────────────────────────────────────
@event.listens_for(Session, "after_flush")
def _mark_report_mutation(session, flush_context):
    touched = chain(session.new, session.dirty, session.deleted)
    if any(getattr(obj, "__tablename__", None) in REPORT_TABLES for obj in touched):
        session.info[_DIRTY_FLAG] = True


@event.listens_for(Session, "after_commit")
def _invalidate_after_commit(session):
    if session.info.pop(_DIRTY_FLAG, False):
        report_cache.invalidate()


@event.listens_for(Session, "after_rollback")
def _forget_rolled_back_mutation(session):
    session.info.pop(_DIRTY_FLAG, None)
