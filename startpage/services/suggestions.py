"""
Suggestion Service - Query suggestions from several search engines at once.

Every enabled engine is asked in parallel. Results are memoised per
(engine, normalised query) for the whole session, and a new request for an
engine supersedes whatever request that engine still has in flight:

  fetch_one("a",  "google")  → token g1 in flight
  fetch_one("ab", "google")  → g1 cancelled, token g2 in flight
  g1 resolves late           → discarded, cache untouched

Staleness is decided by generation number, not by engine name, so a late
answer can never overwrite the cache or in-flight slot of a newer request.
"""

import asyncio
import urllib.parse
from abc import ABC, abstractmethod
from typing import Awaitable, Optional, TypeVar

import httpx
from loguru import logger

from startpage.errors import ProviderError, SuggestionCancelled
from startpage.services.engines import DEFAULT_ENGINES, EngineSet

T = TypeVar("T")


def normalize_query(query: str) -> str:
    """Cache key form of a query: trimmed, single-spaced, lowercase."""
    return " ".join(query.split()).lower()


class CancelToken:
    """
    Cooperative cancellation handle for one suggestion request.

    Sources may poll `cancelled`, await `wait()`, or wrap their I/O in
    `race()` to abandon it as soon as the token fires.
    """

    def __init__(self, engine: str, generation: int):
        self.engine = engine
        self.generation = generation
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` unless the token fires first.

        Raises:
            SuggestionCancelled: the token fired before the awaitable finished
        """
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()

        # A task cancelled above is not done() until the loop runs it again
        if not task.done() or task.cancelled():
            raise SuggestionCancelled(self.engine)
        return task.result()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "live"
        return f"CancelToken({self.engine!r}, gen={self.generation}, {state})"


class SuggestionSource(ABC):
    """Base class for all suggestion engine adapters."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Engine identifier."""
        ...

    @abstractmethod
    async def fetch(self, query: str, token: CancelToken) -> list[str]:
        """Return suggestions for the query, best first."""
        ...


class OpenSearchSuggestionSource(SuggestionSource):
    """
    HTTP adapter for OpenSearch-style suggestion endpoints.

    The endpoint answers with a JSON array whose second element is the
    suggestion list: ["query", ["query one", "query two", ...]].
    """

    def __init__(self, name: str, url: str, client: httpx.AsyncClient, max_results: int = 8):
        self._name = name
        self.url = url
        self.client = client
        self.max_results = max_results

    @property
    def name(self) -> str:
        return self._name

    async def fetch(self, query: str, token: CancelToken) -> list[str]:
        url = self.url.format(query=urllib.parse.quote_plus(query))
        response = await token.race(self.client.get(url))
        response.raise_for_status()
        return self._parse(response)

    def _parse(self, response: httpx.Response) -> list[str]:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name}: suggestion response is not JSON") from e

        if not isinstance(data, list) or len(data) < 2 or not isinstance(data[1], list):
            raise ProviderError(f"{self.name}: unexpected suggestion payload")

        return [str(item) for item in data[1] if isinstance(item, str)][:self.max_results]


DEFAULT_TEMPLATES = ["{query}", "{query} tutorial", "{query} download", "{query} official site"]

ENGINE_TEMPLATES = {
    "google": ["{query} google search", "google {query} guide"],
    "bing": ["{query} bing search", "{query} microsoft bing"],
    "baidu": ["{query} baidu baike", "baidu {query} zhidao"],
    "duckduckgo": ["{query} duckduckgo", "{query} !bang"],
}


class StaticSuggestionSource(SuggestionSource):
    """
    Offline engine that expands the query through fixed templates.

    Deterministic: the same query always gives the same list, with the
    query itself first.
    """

    def __init__(self, name: str, templates: Optional[list[str]] = None, max_results: int = 8):
        self._name = name
        self.templates = templates or DEFAULT_TEMPLATES + ENGINE_TEMPLATES.get(name, [])
        self.max_results = max_results

    @property
    def name(self) -> str:
        return self._name

    async def fetch(self, query: str, token: CancelToken) -> list[str]:
        if token.cancelled:
            raise SuggestionCancelled(self.name)
        return [t.format(query=query) for t in self.templates][:self.max_results]


def build_sources(
    engines: EngineSet,
    client: Optional[httpx.AsyncClient] = None,
    max_results: int = 8,
    offline: bool = False,
) -> dict[str, SuggestionSource]:
    """
    Create one adapter per configured engine.

    Engines without a suggestion endpoint get no source; the aggregator
    answers [] for them.
    """
    sources: dict[str, SuggestionSource] = {}
    for name in engines.names:
        definition = DEFAULT_ENGINES.get(name, {})
        if offline or client is None:
            sources[name] = StaticSuggestionSource(name, max_results=max_results)
        elif "suggest_url" in definition:
            sources[name] = OpenSearchSuggestionSource(
                name, definition["suggest_url"], client, max_results=max_results,
            )
        else:
            logger.debug(f"Engine '{name}' has no suggestion endpoint")
    return sources


class SuggestionAggregator:
    """
    Fans a query out to all enabled engines with caching and cancellation.

    Owns two tables: the result cache keyed by (engine, normalised query)
    and the in-flight table keyed by engine. Sources never touch either.
    """

    def __init__(
        self,
        sources: dict[str, SuggestionSource],
        engines: EngineSet,
        timeout: Optional[float] = None,
    ):
        self.sources = sources
        self.engines = engines
        self.timeout = timeout

        self._cache: dict[tuple[str, str], list[str]] = {}
        self._in_flight: dict[str, CancelToken] = {}
        self._generations: dict[str, int] = {}

    async def fetch_all(self, query: str) -> dict[str, list[str]]:
        """
        Suggestions from every enabled engine.

        Returns:
            Mapping engine → suggestions, in enabled-engine order. Engines
            that failed or were superseded map to [].
        """
        if not query or not query.strip():
            return {}

        engines = self.engines.enabled()
        results = await asyncio.gather(*(self.fetch_one(query, engine) for engine in engines))
        return dict(zip(engines, results))

    async def fetch_one(self, query: str, engine: str) -> list[str]:
        """Suggestions from one engine, served from cache when possible."""
        if not query or not query.strip():
            return []

        key = (engine, normalize_query(query))
        if key in self._cache:
            logger.debug(f"Suggestion cache hit for {key}")
            return list(self._cache[key])

        source = self.sources.get(engine)
        if source is None:
            logger.warning(f"No suggestion source for engine '{engine}'")
            return []

        previous = self._in_flight.get(engine)
        if previous is not None:
            previous.cancel()

        generation = self._generations.get(engine, 0) + 1
        self._generations[engine] = generation
        token = CancelToken(engine, generation)
        self._in_flight[engine] = token

        try:
            suggestions = await self._request(source, query.strip(), token)
        except SuggestionCancelled:
            logger.debug(f"Suggestion request superseded: {token}")
            return []
        except Exception as e:
            logger.warning(f"Suggestion request to '{engine}' failed: {e!r}")
            return []
        finally:
            if self._in_flight.get(engine) is token:
                del self._in_flight[engine]

        if token.cancelled or self._generations.get(engine) != generation:
            logger.debug(f"Discarding stale suggestions: {token}")
            return []

        self._cache[key] = list(suggestions)
        return list(suggestions)

    async def _request(self, source: SuggestionSource, query: str, token: CancelToken) -> list[str]:
        if self.timeout is None:
            return await source.fetch(query, token)
        return await asyncio.wait_for(source.fetch(query, token), self.timeout)

    def in_flight(self, engine: str) -> Optional[CancelToken]:
        """The token of the engine's outstanding request, if any."""
        return self._in_flight.get(engine)

    def cached(self, query: str, engine: str) -> Optional[list[str]]:
        """Cached suggestions for (engine, query), or None."""
        hit = self._cache.get((engine, normalize_query(query)))
        return list(hit) if hit is not None else None

    def clear_cache(self) -> None:
        """Forget every cached result. Requests in flight are unaffected."""
        self._cache.clear()
