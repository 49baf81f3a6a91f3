"""
Short-lived caching of read responses (story listings and similar).
"""
from .cache_interface import ICache, CacheEntry, CacheStats
from .memory_cache import ResponseCache, make_cache_key

__all__ = [
    'ICache',
    'CacheEntry',
    'CacheStats',
    'ResponseCache',
    'make_cache_key',
]
