"""
Service layer - shared infrastructure used by the engine.
"""

from sitmon.services.cache import CacheEntry, CacheManager, CacheStats

__all__ = ["CacheManager", "CacheEntry", "CacheStats"]
