"""
Tests for the suggestion aggregator: caching, supersession of in-flight
requests, failure isolation and the engine adapters.
"""

import asyncio

import httpx
import pytest

from startpage.errors import ProviderError, SuggestionCancelled
from startpage.services.engines import EngineSet
from startpage.services.suggestions import (
    CancelToken,
    OpenSearchSuggestionSource,
    StaticSuggestionSource,
    SuggestionAggregator,
    SuggestionSource,
    build_sources,
    normalize_query,
)


class RacingSource(SuggestionSource):
    """Engine that abandons its request as soon as its token fires."""

    def __init__(self, name):
        self._name = name
        self.gate = asyncio.Event()

    @property
    def name(self):
        return self._name

    async def fetch(self, query, token):
        await token.race(self.gate.wait())
        return [f"{query} raced"]


class SlowSource(SuggestionSource):
    @property
    def name(self):
        return "google"

    async def fetch(self, query, token):
        await asyncio.sleep(10)
        return [query]


def _aggregator(sources, enabled=None, **kwargs):
    enabled = enabled or {name: True for name in sources}
    return SuggestionAggregator(sources, EngineSet(enabled), **kwargs)


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


class TestNormalizeQuery:
    def test_trims_collapses_and_lowercases(self):
        assert normalize_query("  Hello   World ") == "hello world"

    def test_empty(self):
        assert normalize_query("   ") == ""


class TestFetchOne:
    """Test caching and failure handling for a single engine."""

    @pytest.mark.asyncio
    async def test_blank_query_returns_empty(self, fake_source_factory):
        source = fake_source_factory("google")
        aggregator = _aggregator({"google": source})
        assert await aggregator.fetch_one("  ", "google") == []
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_returns_source_suggestions(self, fake_source_factory):
        aggregator = _aggregator({"google": fake_source_factory("google")})
        assert await aggregator.fetch_one("cats", "google") == ["cats google 0", "cats google 1"]

    @pytest.mark.asyncio
    async def test_cache_hit_skips_provider(self, fake_source_factory):
        source = fake_source_factory("google")
        aggregator = _aggregator({"google": source})

        first = await aggregator.fetch_one("Hello World", "google")
        second = await aggregator.fetch_one("  hello   world ", "google")

        assert first == second
        assert len(source.calls) == 1

    @pytest.mark.asyncio
    async def test_cache_is_per_engine(self, fake_source_factory):
        google = fake_source_factory("google")
        bing = fake_source_factory("bing")
        aggregator = _aggregator({"google": google, "bing": bing})

        await aggregator.fetch_one("cats", "google")
        await aggregator.fetch_one("cats", "bing")

        assert len(google.calls) == 1
        assert len(bing.calls) == 1

    @pytest.mark.asyncio
    async def test_cache_hit_returns_copy(self, fake_source_factory):
        aggregator = _aggregator({"google": fake_source_factory("google")})
        result = await aggregator.fetch_one("cats", "google")
        result.append("tampered")
        assert aggregator.cached("cats", "google") == ["cats google 0", "cats google 1"]

    @pytest.mark.asyncio
    async def test_failure_returns_empty_and_is_not_cached(self, fake_source_factory):
        source = fake_source_factory("google", error=RuntimeError("network down"))
        aggregator = _aggregator({"google": source})

        assert await aggregator.fetch_one("cats", "google") == []
        assert aggregator.cached("cats", "google") is None

        await aggregator.fetch_one("cats", "google")
        assert len(source.calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_returns_empty(self):
        aggregator = _aggregator({"google": SlowSource()}, timeout=0.01)
        assert await aggregator.fetch_one("cats", "google") == []
        assert aggregator.in_flight("google") is None

    @pytest.mark.asyncio
    async def test_unknown_engine_returns_empty(self, fake_source_factory):
        aggregator = _aggregator({"google": fake_source_factory("google")})
        assert await aggregator.fetch_one("cats", "yahoo") == []

    @pytest.mark.asyncio
    async def test_clear_cache_forces_refetch(self, fake_source_factory):
        source = fake_source_factory("google")
        aggregator = _aggregator({"google": source})

        await aggregator.fetch_one("cats", "google")
        aggregator.clear_cache()
        await aggregator.fetch_one("cats", "google")

        assert len(source.calls) == 2


class TestSupersession:
    """Test that newer requests cancel older ones without being clobbered."""

    @pytest.mark.asyncio
    async def test_new_request_cancels_previous_token(self, gated_source_factory):
        source = gated_source_factory("google")
        aggregator = _aggregator({"google": source})

        first = asyncio.create_task(aggregator.fetch_one("a", "google"))
        await _settle()
        first_token = aggregator.in_flight("google")

        second = asyncio.create_task(aggregator.fetch_one("ab", "google"))
        await _settle()

        assert first_token.cancelled
        assert aggregator.in_flight("google") is not first_token

        source.release("a")
        source.release("ab")
        assert await first == []
        assert await second == ["ab result"]

    @pytest.mark.asyncio
    async def test_late_answer_never_touches_cache(self, gated_source_factory):
        source = gated_source_factory("google")
        aggregator = _aggregator({"google": source})

        first = asyncio.create_task(aggregator.fetch_one("a", "google"))
        await _settle()
        second = asyncio.create_task(aggregator.fetch_one("ab", "google"))
        await _settle()

        # the superseded request finishes while the newer one is pending
        source.release("a")
        assert await first == []
        assert aggregator.cached("a", "google") is None
        second_token = aggregator.in_flight("google")
        assert second_token is not None
        assert not second_token.cancelled

        source.release("ab")
        assert await second == ["ab result"]
        assert aggregator.cached("ab", "google") == ["ab result"]
        assert aggregator.in_flight("google") is None

    @pytest.mark.asyncio
    async def test_answer_arriving_after_newer_one_settled(self, gated_source_factory):
        source = gated_source_factory("google")
        aggregator = _aggregator({"google": source})

        first = asyncio.create_task(aggregator.fetch_one("a", "google"))
        await _settle()
        second = asyncio.create_task(aggregator.fetch_one("ab", "google"))
        await _settle()

        source.release("ab")
        assert await second == ["ab result"]
        assert aggregator.in_flight("google") is None

        # the superseded request only now resolves
        source.release("a")
        assert await first == []
        assert aggregator.cached("a", "google") is None
        assert aggregator.cached("ab", "google") == ["ab result"]
        assert aggregator.in_flight("google") is None

    @pytest.mark.asyncio
    async def test_cooperative_source_stops_early(self):
        source = RacingSource("google")
        aggregator = _aggregator({"google": source})

        first = asyncio.create_task(aggregator.fetch_one("a", "google"))
        await _settle()
        second = asyncio.create_task(aggregator.fetch_one("ab", "google"))
        await _settle()

        # the first request gives up without its gate ever opening
        assert await asyncio.wait_for(first, timeout=1) == []

        source.gate.set()
        assert await second == ["ab raced"]

    @pytest.mark.asyncio
    async def test_other_engines_unaffected(self, gated_source_factory):
        google = gated_source_factory("google")
        bing = gated_source_factory("bing")
        aggregator = _aggregator({"google": google, "bing": bing})

        bing_task = asyncio.create_task(aggregator.fetch_one("a", "bing"))
        await _settle()
        google_task = asyncio.create_task(aggregator.fetch_one("ab", "google"))
        await _settle()

        assert not aggregator.in_flight("bing").cancelled

        bing.release("a")
        google.release("ab")
        assert await bing_task == ["a result"]
        assert await google_task == ["ab result"]


class TestFetchAll:
    """Test fan-out across enabled engines."""

    @pytest.mark.asyncio
    async def test_keys_are_enabled_engines_in_order(self, fake_source_factory):
        sources = {name: fake_source_factory(name) for name in ("google", "bing", "baidu")}
        aggregator = _aggregator(sources, {"google": True, "bing": False, "baidu": True})

        results = await aggregator.fetch_all("hello world")

        assert list(results) == ["google", "baidu"]
        assert sources["bing"].calls == []

    @pytest.mark.asyncio
    async def test_blank_query_returns_empty_mapping(self, fake_source_factory):
        aggregator = _aggregator({"google": fake_source_factory("google")})
        assert await aggregator.fetch_all("   ") == {}

    @pytest.mark.asyncio
    async def test_failing_engine_maps_to_empty_list(self, fake_source_factory):
        sources = {
            "google": fake_source_factory("google"),
            "bing": fake_source_factory("bing", error=ValueError("bad payload")),
        }
        aggregator = _aggregator(sources)

        results = await aggregator.fetch_all("cats")

        assert results["google"] == ["cats google 0", "cats google 1"]
        assert results["bing"] == []

    @pytest.mark.asyncio
    async def test_engine_toggle_applies_to_next_query(self, fake_source_factory):
        sources = {name: fake_source_factory(name) for name in ("google", "bing")}
        engines = EngineSet({"google": True, "bing": True})
        aggregator = SuggestionAggregator(sources, engines)

        engines.set_enabled("bing", False)
        results = await aggregator.fetch_all("cats")

        assert list(results) == ["google"]


class TestCancelToken:
    @pytest.mark.asyncio
    async def test_race_returns_result(self):
        token = CancelToken("google", 1)
        assert await token.race(asyncio.sleep(0, result=5)) == 5

    @pytest.mark.asyncio
    async def test_race_raises_when_cancelled(self):
        token = CancelToken("google", 1)
        task = asyncio.create_task(token.race(asyncio.sleep(10)))
        await _settle()
        token.cancel()
        with pytest.raises(SuggestionCancelled):
            await task

    def test_repr(self):
        assert repr(CancelToken("bing", 3)) == "CancelToken('bing', gen=3, live)"


def _suggest_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestOpenSearchSource:
    """Test the HTTP adapter against a mock transport."""

    URL = "https://suggest.example/complete?q={query}"

    @pytest.mark.asyncio
    async def test_parses_second_element(self):
        seen = []

        def handler(request):
            seen.append(request.url.params["q"])
            return httpx.Response(200, json=["hello w", ["hello world", "hello wiki", 3]])

        async with _suggest_client(handler) as client:
            source = OpenSearchSuggestionSource("google", self.URL, client)
            result = await source.fetch("hello w", CancelToken("google", 1))

        assert result == ["hello world", "hello wiki"]
        assert seen == ["hello w"]

    @pytest.mark.asyncio
    async def test_respects_max_results(self):
        def handler(request):
            return httpx.Response(200, json=["q", [f"q {i}" for i in range(20)]])

        async with _suggest_client(handler) as client:
            source = OpenSearchSuggestionSource("google", self.URL, client, max_results=3)
            result = await source.fetch("q", CancelToken("google", 1))

        assert result == ["q 0", "q 1", "q 2"]

    @pytest.mark.asyncio
    async def test_bad_payload_raises(self):
        def handler(request):
            return httpx.Response(200, json={"unexpected": True})

        async with _suggest_client(handler) as client:
            source = OpenSearchSuggestionSource("google", self.URL, client)
            with pytest.raises(ProviderError):
                await source.fetch("q", CancelToken("google", 1))

    @pytest.mark.asyncio
    async def test_non_json_raises(self):
        def handler(request):
            return httpx.Response(200, text="<html>nope</html>")

        async with _suggest_client(handler) as client:
            source = OpenSearchSuggestionSource("google", self.URL, client)
            with pytest.raises(ProviderError):
                await source.fetch("q", CancelToken("google", 1))

    @pytest.mark.asyncio
    async def test_http_error_becomes_empty_result(self):
        def handler(request):
            return httpx.Response(503)

        async with _suggest_client(handler) as client:
            source = OpenSearchSuggestionSource("google", self.URL, client)
            aggregator = _aggregator({"google": source})
            assert await aggregator.fetch_one("q", "google") == []


class TestStaticSource:
    @pytest.mark.asyncio
    async def test_deterministic_with_query_first(self):
        source = StaticSuggestionSource("google")
        first = await source.fetch("rust", CancelToken("google", 1))
        second = await source.fetch("rust", CancelToken("google", 2))
        assert first == second
        assert first[0] == "rust"

    @pytest.mark.asyncio
    async def test_engine_specific_templates(self):
        source = StaticSuggestionSource("baidu")
        result = await source.fetch("rust", CancelToken("baidu", 1))
        assert "rust baidu baike" in result

    @pytest.mark.asyncio
    async def test_cancelled_token_raises(self):
        token = CancelToken("google", 1)
        token.cancel()
        with pytest.raises(SuggestionCancelled):
            await StaticSuggestionSource("google").fetch("rust", token)


class TestBuildSources:
    def test_offline_uses_static_sources(self):
        engines = EngineSet({"google": True, "sogou": True})
        sources = build_sources(engines, offline=True)
        assert all(isinstance(s, StaticSuggestionSource) for s in sources.values())
        assert list(sources) == ["google", "sogou"]

    @pytest.mark.asyncio
    async def test_online_skips_engines_without_endpoint(self):
        engines = EngineSet({"google": True, "sogou": True})
        async with httpx.AsyncClient() as client:
            sources = build_sources(engines, client=client)
        assert list(sources) == ["google"]
        assert isinstance(sources["google"], OpenSearchSuggestionSource)
