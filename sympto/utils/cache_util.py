# /sympto/utils/cache_util.py
"""
Response cache stores. Handlers only see the ``CacheStore`` interface, so
the in-process store can be swapped for a shared one at app creation.
"""
import threading
import time
from collections import OrderedDict

from flask import current_app


class CacheStore:
    """Interface for response cache backends."""

    def get(self, key):
        raise NotImplementedError

    def set(self, key, value, ttl):
        raise NotImplementedError

    def evict(self, key):
        raise NotImplementedError

    def evict_prefix(self, prefix):
        raise NotImplementedError

    def clear(self):
        raise NotImplementedError


class MemoryStore(CacheStore):
    """Process-local TTL store. Expired entries are swept once the store grows past ``max_entries``."""

    def __init__(self, max_entries=1000, clock=time.monotonic):
        self.max_entries = max_entries
        self._clock = clock
        self._entries = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key, value, ttl):
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)
            self._entries.move_to_end(key)
            if len(self._entries) > self.max_entries:
                self._sweep()

    def _sweep(self):
        now = self._clock()
        for key in [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]:
            del self._entries[key]
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def evict(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def evict_prefix(self, prefix):
        with self._lock:
            for key in [k for k in self._entries if k.startswith(prefix)]:
                del self._entries[key]

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        return len(self._entries)


def init_cache(app, store=None):
    store = store or MemoryStore(max_entries=app.config.get('CACHE_MAX_ENTRIES', 1000))
    app.extensions['response_cache'] = store
    return store


def get_cache() -> CacheStore:
    return current_app.extensions['response_cache']


def user_key_prefix(user_id):
    return f"user:{user_id}:"


def invalidate_user_cache(user_id):
    get_cache().evict_prefix(user_key_prefix(user_id))
