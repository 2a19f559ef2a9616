"""Bounded in-memory reply cache."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Optional, Sequence

from .context import Turn

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 50
KEY_SEPARATOR = "|"


def make_cache_key(context: Sequence[Turn], message: str) -> str:
    """Derive the cache key from the last context turn and the new message.

    Both parts are trimmed and the key is lower-cased, so requests that differ
    only in case or surrounding whitespace share an entry.
    """
    last = context[-1].content if context else ""
    return f"{last.strip()}{KEY_SEPARATOR}{message.strip()}".lower()


class ResponseCache:
    """Key to reply mapping with first-in, first-out eviction.

    Lookups never reorder entries. Overwriting an existing key replaces the
    value in place and keeps the key's original eviction position.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_SIZE) -> None:
        if capacity < 1:
            raise ValueError("capacity must be a positive integer")
        self.capacity = capacity
        self._entries: "OrderedDict[str, str]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def lookup(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def store(self, key: str, reply: str) -> None:
        if key not in self._entries and len(self._entries) >= self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted oldest cache entry %r", evicted)
        self._entries[key] = reply

    def clear(self) -> None:
        self._entries.clear()
