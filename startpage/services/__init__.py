# Startpage Services Package
"""
Backend services for the start page core.

Services own state shared between handlers: the bookmark collection, the
engine set and the suggestion cache.
"""

from .bookmark_index import BookmarkIndex, Bookmark
from .engines import EngineSet
from .suggestions import SuggestionAggregator, SuggestionSource

__all__ = ["BookmarkIndex", "Bookmark", "EngineSet", "SuggestionAggregator", "SuggestionSource"]
