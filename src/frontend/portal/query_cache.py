"""Client-side query cache keyed by resource tuples.

Keys look like ``("assessments",)`` for a list and ``("assessments", id)`` for a
single resource; template details sit under ``("template", id)``. Mutations
never patch entries; they invalidate a key prefix and the next reader
re-fetches from the gateway.
"""
import logging
import threading
from collections.abc import Callable, Hashable
from typing import Any

logger = logging.getLogger(__name__)

QueryKey = tuple[Hashable, ...]

ASSESSMENTS: QueryKey = ("assessments",)
TEMPLATES: QueryKey = ("templates",)
TEMPLATE: QueryKey = ("template",)


def assessment_key(assessment_id: str) -> QueryKey:
    return ASSESSMENTS + (assessment_id,)


def template_key(template_id: str) -> QueryKey:
    return TEMPLATE + (template_id,)


class QueryCache:
    def __init__(self):
        self._entries: dict[QueryKey, Any] = {}
        # bumped on every invalidation; a load that straddles one is not stored
        self._generation = 0
        self._lock = threading.Lock()

    def fetch(self, key: QueryKey, loader: Callable[[], Any]) -> Any:
        with self._lock:
            if key in self._entries:
                return self._entries[key]
            generation = self._generation

        value = loader()

        with self._lock:
            if generation == self._generation:
                self._entries[key] = value
        return value

    def peek(self, key: QueryKey) -> Any:
        with self._lock:
            return self._entries.get(key)

    def __contains__(self, key: QueryKey) -> bool:
        with self._lock:
            return key in self._entries

    def invalidate(self, prefix: QueryKey) -> int:
        """Drop every entry whose key starts with ``prefix``."""
        with self._lock:
            stale = [k for k in self._entries if k[:len(prefix)] == prefix]
            for k in stale:
                del self._entries[k]
            self._generation += 1
        logger.debug("Invalidated %d cache entries under %s", len(stale), prefix)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1
