"""Client runtime: navigation state, lazy content resolution, and caching."""

from __future__ import annotations

from .content_cache import CacheEntry, CacheState, CacheStats, ContentCache
from .content_view import ContentView, ContentViewState
from .navigation import NavigationRow, NavigationStore, SelectionHistory
from .resolver import Content, ContentResolver
from .session import BrowseSession
from .source import ContentSource, FileSystemContentSource, MappingContentSource, decode_text

__all__ = [
    "CacheEntry",
    "CacheState",
    "CacheStats",
    "ContentCache",
    "ContentView",
    "ContentViewState",
    "NavigationRow",
    "NavigationStore",
    "SelectionHistory",
    "Content",
    "ContentResolver",
    "BrowseSession",
    "ContentSource",
    "FileSystemContentSource",
    "MappingContentSource",
    "decode_text",
]
