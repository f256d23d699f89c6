"""
Start page core - wires services, handlers and the router together.

Usage:
    async with StartPage.from_settings() as page:
        result = await page.handle("= 2+2*3")

Default commands:
    =   calculator
    tq  weather
    tr  translate
    /   bookmark search
Plus any [commands.<prefix>] site searches from settings.toml.
"""

from pathlib import Path
from typing import Optional

import httpx
from loguru import logger

from startpage.search.handlers import (
    BookmarkSearchHandler,
    CalculatorHandler,
    DefaultSearchHandler,
    TranslateHandler,
    WeatherHandler,
)
from startpage.search.handlers.translate import GoogleTranslateProvider
from startpage.search.handlers.weather import WttrWeatherProvider
from startpage.search.handlers.web_search import load_site_commands
from startpage.search.router import CommandHandler, CommandResult, CommandRouter
from startpage.services.bookmark_index import BookmarkIndex, ChromeBookmarksProvider
from startpage.services.engines import EngineSet
from startpage.services.suggestions import SuggestionAggregator, build_sources
from startpage.utils.helpers import load_settings

USER_AGENT = "startpage/0.1 (+suggestions)"


class StartPage:
    """
    One search-box session.

    Owns the HTTP client, engine set, suggestion aggregator, bookmark index
    and router. Created once per session; clear_caches() resets it.
    """

    def __init__(
        self,
        settings: dict,
        client: Optional[httpx.AsyncClient] = None,
        bookmark_provider=None,
        sources: Optional[dict] = None,
        weather_provider=None,
        translate_provider=None,
    ):
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

        self.engines = EngineSet.from_settings(settings)

        suggest = settings["suggestions"]
        if sources is None:
            sources = build_sources(
                self.engines,
                self.client,
                max_results=suggest["max_results"],
                offline=suggest["offline"],
            )
        self.aggregator = SuggestionAggregator(sources, self.engines, timeout=suggest["timeout"])

        if bookmark_provider is None:
            section = settings["bookmarks"]
            bookmark_provider = ChromeBookmarksProvider(
                Path(section["file"]).expanduser() if section["file"] else None,
                profile=section["profile"],
            )
        self.bookmarks = BookmarkIndex.from_settings(bookmark_provider, settings)

        weather = settings["weather"]
        if weather_provider is None:
            weather_provider = WttrWeatherProvider(self.client, weather["url"], weather["timeout"])
        self.weather = WeatherHandler(
            weather_provider,
            default_city=weather["default_city"],
            cache_seconds=weather["cache_seconds"],
        )

        translate = settings["translate"]
        if translate_provider is None:
            translate_provider = GoogleTranslateProvider(self.client, translate["url"], translate["timeout"])

        self.router = CommandRouter(fallback=DefaultSearchHandler(self.aggregator, self.engines))
        self.router.register("=", CalculatorHandler())
        self.router.register("tq", self.weather)
        self.router.register("tr", TranslateHandler(translate_provider, locale=translate["locale"]))
        self.router.register("/", BookmarkSearchHandler(self.bookmarks))

        for prefix, handler in load_site_commands(settings).items():
            self.router.register(prefix, handler)

        logger.debug(f"Start page ready with commands {sorted(self.router.commands)}")

    @classmethod
    def from_settings(cls, settings_path: Optional[Path] = None, **kwargs) -> "StartPage":
        return cls(load_settings(settings_path), **kwargs)

    def register(self, prefix: str, handler: CommandHandler) -> None:
        """Add or replace a command at runtime."""
        self.router.register(prefix, handler)

    async def handle(self, text: str) -> CommandResult:
        """Route one line of search-box input."""
        return await self.router.route(text)

    def clear_caches(self) -> None:
        self.aggregator.clear_cache()
        self.weather.clear_cache()
        self.bookmarks.invalidate()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "StartPage":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
