"""Caching layer - keeps resolved songs around to save backend calls."""

from gplaybot.application.cache.song_cache import CacheEntry, SongCache, SongLoader

__all__ = ["CacheEntry", "SongCache", "SongLoader"]
