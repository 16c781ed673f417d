"""Response storage for apiflight.

This package provides :class:`DiskCacheStorage`, the :mod:`diskcache`
implementation of the :class:`CacheStorage` protocol that
:class:`~apiflight.data.service.DataService` reads, writes and observes.
Entries are keyed by caller-chosen cache ids and never expire on their
own; callers decide staleness with ``refresh=True``.
"""

from apiflight.cache.storage import CacheStorage, DiskCacheStorage

__all__ = ["CacheStorage", "DiskCacheStorage"]
