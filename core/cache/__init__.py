"""
Cache Module - Entry-level translation cache

Exports:
- CacheInterface, CacheStats (base cache interface)
- EntryCache (bounded in-memory LRU cache of entry translations)
- compute_entry_key (hash key generator)
"""

from .base import CacheInterface, CacheStats, compute_entry_key
from .entry_cache import EntryCache

__all__ = [
    'CacheInterface',
    'CacheStats',
    'EntryCache',
    'compute_entry_key',
]
