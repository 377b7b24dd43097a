"""
In-process read cache with time-boxed entries and tag invalidation.

Entries carry tags such as "user-photos-{id}" or "album-photos-{id}"; writes
call invalidate_tags() so stale lists are dropped before their TTL runs out.
Store plain values (Pydantic models, dicts), never ORM instances.
"""
import logging
import threading
import time
from typing import Any, Dict, Iterable, Optional, Set, Tuple

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.config import get_settings
from app.utils.prometheus_metrics import cache_requests_total

logger = logging.getLogger("app.cache")

_PENDING_TAGS_KEY = "cache_pending_tags"


def user_photos_tag(user_id: str) -> str:
    return f"user-photos-{user_id}"


def album_photos_tag(album_id: str) -> str:
    return f"album-photos-{album_id}"


def user_albums_tag(user_id: str) -> str:
    return f"user-albums-{user_id}"


def dashboard_stats_tag(user_id: str) -> str:
    return f"dashboard-stats-{user_id}"


class TaggedTTLCache:
    """
    Dict-backed cache; each entry expires after ttl seconds.

    Expired entries are swept on every set() and the map never holds more
    than max_entries (oldest inserted are evicted first). Tag sets only
    reference live keys.
    """

    def __init__(self, ttl_seconds: float, max_entries: int = 1024):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        # key -> (expires_at, value, tags)
        self._entries: Dict[str, Tuple[float, Any, Tuple[str, ...]]] = {}
        self._tags: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        for tag in entry[2]:
            keys = self._tags.get(tag)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._tags[tag]
        return True

    def _sweep(self, now: float) -> None:
        for key in [k for k, entry in self._entries.items() if entry[0] <= now]:
            self._remove(key)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry[0] <= time.monotonic():
                self._remove(key)
                entry = None
        cache_requests_total.labels(result="hit" if entry else "miss").inc()
        return entry[1] if entry else None

    def set(self, key: str, value: Any, tags: Iterable[str] = (), ttl: Optional[float] = None) -> None:
        now = time.monotonic()
        tags = tuple(dict.fromkeys(tags))
        with self._lock:
            self._remove(key)
            self._sweep(now)
            while len(self._entries) >= self.max_entries:
                self._remove(next(iter(self._entries)))

            expires_at = now + (ttl if ttl is not None else self.ttl_seconds)
            self._entries[key] = (expires_at, value, tags)
            for tag in tags:
                self._tags.setdefault(tag, set()).add(key)

    def invalidate_tags(self, *tags: str) -> int:
        """Drop every entry carrying any of the tags. Returns the number dropped."""
        dropped = 0
        with self._lock:
            for tag in tags:
                for key in list(self._tags.get(tag, ())):
                    if self._remove(key):
                        dropped += 1
        if dropped:
            logger.debug("Cache invalidated", extra={"event": "cache", "tags": list(tags), "dropped": dropped})
        return dropped

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tags.clear()

    def tag_count(self) -> int:
        return len(self._tags)

    def __len__(self) -> int:
        return len(self._entries)


_cache: Optional[TaggedTTLCache] = None


def get_cache() -> TaggedTTLCache:
    """Get or create the process-wide cache."""
    global _cache
    if _cache is None:
        settings = get_settings()
        _cache = TaggedTTLCache(
            ttl_seconds=settings.photo_cache_ttl_seconds,
            max_entries=settings.photo_cache_max_entries,
        )
    return _cache


def invalidate_for_session(db: AsyncSession, *tags: str) -> None:
    """
    Invalidate tags now and again once the session's transaction commits.

    A reader on another session may re-cache the old committed rows between
    the write and the commit; the second pass drops those entries.
    """
    get_cache().invalidate_tags(*tags)
    db.info.setdefault(_PENDING_TAGS_KEY, set()).update(tags)


@event.listens_for(Session, "after_commit")
def _invalidate_pending_tags(session: Session) -> None:
    tags = session.info.pop(_PENDING_TAGS_KEY, None)
    if tags:
        get_cache().invalidate_tags(*tags)


@event.listens_for(Session, "after_rollback")
def _discard_pending_tags(session: Session) -> None:
    session.info.pop(_PENDING_TAGS_KEY, None)
