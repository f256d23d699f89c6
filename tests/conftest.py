"""
Shared test fixtures for the start page test suite.

Provides bookmark trees, a Chrome Bookmarks file, settings files written
with real file I/O, and deterministic suggestion sources.
"""

import asyncio
import json

import pytest
import toml

from startpage.services.suggestions import SuggestionSource


SAMPLE_TREE = [
    {
        "title": "",
        "children": [
            {
                "title": "Bookmarks bar",
                "children": [
                    {"title": "GitHub", "url": "https://github.com"},
                    {
                        "title": "Work",
                        "children": [
                            {"title": "Jira Board", "url": "https://jira.example.com/board"},
                            {"title": "Confluence", "url": "https://confluence.example.com"},
                        ],
                    },
                    {"title": "Python Docs", "url": "https://docs.python.org/3/"},
                ],
            },
            {
                "title": "Other bookmarks",
                "children": [
                    {"title": "Stack Overflow", "url": "https://stackoverflow.com"},
                    {"title": "Empty folder", "children": []},
                ],
            },
        ],
    }
]


SAMPLE_CHROME_BOOKMARKS = {
    "checksum": "test",
    "roots": {
        "bookmark_bar": {
            "children": [
                {"id": "1", "name": "Python Docs", "type": "url", "url": "https://docs.python.org"},
                {
                    "id": "2",
                    "name": "Work",
                    "type": "folder",
                    "children": [
                        {"id": "3", "name": "Jira Board", "type": "url",
                         "url": "https://jira.example.com/board"},
                    ],
                },
            ],
            "id": "0",
            "name": "Bookmarks Bar",
            "type": "folder",
        },
        "other": {
            "children": [
                {"id": "7", "name": "Stack Overflow", "type": "url", "url": "https://stackoverflow.com"},
            ],
            "id": "100",
            "name": "Other Bookmarks",
            "type": "folder",
        },
        "synced": {"children": [], "id": "200", "name": "Mobile Bookmarks", "type": "folder"},
    },
    "version": 1,
}


@pytest.fixture
def sample_tree():
    return SAMPLE_TREE


@pytest.fixture
def chrome_bookmarks_path(tmp_path):
    """Write a real Chrome Bookmarks JSON file."""
    path = tmp_path / "Bookmarks"
    path.write_text(json.dumps(SAMPLE_CHROME_BOOKMARKS, indent=2))
    return path


@pytest.fixture
def tmp_settings(tmp_path):
    """Create a real settings TOML file overriding a few defaults."""
    settings_path = tmp_path / "settings.toml"
    data = {
        "engines": {
            "primary": "baidu",
            "enabled": {"google": True, "bing": False, "baidu": True},
        },
        "bookmarks": {"cache_seconds": 60, "limit": 10},
        "suggestions": {"offline": True},
        "commands": {
            "!g": {"name": "GitHub", "url": "https://github.com/search?q={query}"},
        },
    }
    settings_path.write_text(toml.dumps(data))
    return settings_path


class FakeSource(SuggestionSource):
    """Deterministic engine: answers '<query> <engine> <n>' and records calls."""

    def __init__(self, name, count=2, error=None):
        self._name = name
        self.count = count
        self.error = error
        self.calls = []

    @property
    def name(self):
        return self._name

    async def fetch(self, query, token):
        self.calls.append(query)
        if self.error is not None:
            raise self.error
        return [f"{query} {self._name} {i}" for i in range(self.count)]


class GatedSource(SuggestionSource):
    """Engine whose answers are held back until the test releases them."""

    def __init__(self, name):
        self._name = name
        self.calls = []
        self._gates = {}

    @property
    def name(self):
        return self._name

    def _gate(self, query):
        return self._gates.setdefault(query, asyncio.Event())

    def release(self, query):
        self._gate(query).set()

    async def fetch(self, query, token):
        self.calls.append(query)
        await self._gate(query).wait()
        return [f"{query} result"]


@pytest.fixture
def fake_source_factory():
    return FakeSource


@pytest.fixture
def gated_source_factory():
    return GatedSource
