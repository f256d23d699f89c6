"""
Command handlers - One processor per command prefix.

Each handler consumes the input left after its prefix and returns a
CommandResult.
"""

from .bookmarks import BookmarkSearchHandler
from .calculator import CalculatorHandler
from .default_search import DefaultSearchHandler
from .translate import TranslateHandler
from .weather import WeatherHandler
from .web_search import SiteSearchHandler

__all__ = [
    "BookmarkSearchHandler",
    "CalculatorHandler",
    "DefaultSearchHandler",
    "TranslateHandler",
    "WeatherHandler",
    "SiteSearchHandler",
]
