"""
Exchange caching package.

Short-lived snapshots of venue responses. Redis is the shared tier; an
in-process map takes over whenever Redis is absent or failing, so cache
trouble never reaches callers.
"""

from .cache_store import CacheStore, MemoryCache, make_cache_key

__all__ = ["CacheStore", "MemoryCache", "make_cache_key"]
