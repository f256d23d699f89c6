"""
Bookmark Index - Flattened, in-memory bookmark collection with ranked search.

The browser's bookmark tree is walked depth-first and flattened into
immutable Bookmark records. Folders contribute to a breadcrumb path
("Bookmarks bar > Work") handed down to their descendants.

Ranked search scores each bookmark per query term; the first rule that
applies to a term wins and scores add up across terms:

  title == term           100
  title starts with term   80
  domain == term           70
  domain starts with term  60
  title contains term      50
  domain contains term     40
  path contains term       30
  url contains term        20
  search text contains     10

Bookmarks scoring 0 are dropped. Ties keep collection order.
"""

import asyncio
import json
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

from loguru import logger
from rapidfuzz import fuzz, process, utils

from startpage.utils.helpers import extract_domain

TreeNode = dict
BookmarkProvider = Callable[[], Awaitable[Union[TreeNode, list]]]

MODES = ("ranked", "substring", "fuzzy")

TITLE_EXACT = 100
TITLE_PREFIX = 80
DOMAIN_EXACT = 70
DOMAIN_PREFIX = 60
TITLE_CONTAINS = 50
DOMAIN_CONTAINS = 40
PATH_CONTAINS = 30
URL_CONTAINS = 20
TEXT_CONTAINS = 10


@dataclass(frozen=True)
class Bookmark:
    """A single flattened bookmark."""
    title: str
    url: str
    path: str = ""
    domain: str = ""
    search_text: str = ""
    id: str = ""

    @classmethod
    def create(cls, title: str, url: str, path: str = "", id: str = "") -> "Bookmark":
        """Build a bookmark with its derived domain and search text."""
        domain = extract_domain(url)
        return cls(
            title=title,
            url=url,
            path=path,
            domain=domain,
            search_text=f"{title.lower()} {domain.lower()} {path.lower()}",
            id=id,
        )


def flatten_tree(tree: Union[TreeNode, list]) -> list[Bookmark]:
    """
    Flatten a bookmark tree into a list of bookmarks.

    Args:
        tree: A TreeNode ({"title", "url"?, "children"?}) or a list of them

    Returns:
        Bookmarks in depth-first order
    """
    bookmarks: list[Bookmark] = []
    nodes = tree if isinstance(tree, list) else [tree]
    _walk(nodes, [], bookmarks)
    return bookmarks


def _walk(nodes: list, folders: list[str], out: list[Bookmark]) -> None:
    for node in nodes:
        title = node.get("title") or ""
        children = node.get("children")

        if children is not None:
            _walk(children, folders + [title] if title else folders, out)
        elif node.get("url"):
            out.append(Bookmark.create(
                title=title,
                url=node["url"],
                path=" > ".join(folders),
                id=str(node.get("id", "")),
            ))


def score_term(bookmark: Bookmark, term: str) -> int:
    """Score one lowercase term against one bookmark."""
    title = bookmark.title.lower()
    domain = bookmark.domain.lower()

    if title == term:
        return TITLE_EXACT
    if title.startswith(term):
        return TITLE_PREFIX
    if domain == term:
        return DOMAIN_EXACT
    if domain.startswith(term):
        return DOMAIN_PREFIX
    if term in title:
        return TITLE_CONTAINS
    if term in domain:
        return DOMAIN_CONTAINS
    if term in bookmark.path.lower():
        return PATH_CONTAINS
    if term in bookmark.url.lower():
        return URL_CONTAINS
    if term in bookmark.search_text:
        return TEXT_CONTAINS
    return 0


def score_bookmark(bookmark: Bookmark, query: str) -> int:
    """Total score of a bookmark for a (possibly multi-term) query."""
    return sum(score_term(bookmark, term) for term in query.lower().split())


class BookmarkIndex:
    """
    Holds the flattened bookmark collection and answers queries.

    The collection is a tuple replaced in one assignment on reload, so a
    search running alongside a reload sees either the old or the new
    collection. ensure_loaded() reloads once the validity window expires.
    """

    def __init__(
        self,
        provider: BookmarkProvider,
        cache_seconds: float = 300,
        mode: str = "ranked",
        limit: int = 5,
        substring_limit: int = 20,
        fuzzy_threshold: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ):
        if mode not in MODES:
            raise ValueError(f"Unknown bookmark search mode: {mode}")

        self.provider = provider
        self.cache_seconds = cache_seconds
        self.mode = mode
        self.limit = limit
        self.substring_limit = substring_limit
        self.fuzzy_threshold = fuzzy_threshold
        self._clock = clock

        self._bookmarks: tuple[Bookmark, ...] = ()
        self._loaded_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, provider: BookmarkProvider, settings: dict) -> "BookmarkIndex":
        """Build from the [bookmarks] settings section."""
        section = settings.get("bookmarks", {})
        return cls(
            provider,
            cache_seconds=section.get("cache_seconds", 300),
            mode=section.get("mode", "ranked"),
            limit=section.get("limit", 5),
            substring_limit=section.get("substring_limit", 20),
            fuzzy_threshold=section.get("fuzzy_threshold", 50),
        )

    @property
    def bookmarks(self) -> tuple[Bookmark, ...]:
        return self._bookmarks

    @property
    def is_stale(self) -> bool:
        if self._loaded_at is None:
            return True
        return self._clock() - self._loaded_at >= self.cache_seconds

    async def load(self) -> int:
        """
        Read the bookmark tree and replace the collection.

        Returns:
            Number of bookmarks loaded

        Raises:
            Whatever the provider raises; the old collection is kept.
        """
        tree = await self.provider()
        bookmarks = tuple(flatten_tree(tree))

        self._bookmarks = bookmarks
        self._loaded_at = self._clock()
        logger.debug(f"Loaded {len(bookmarks)} bookmarks")
        return len(bookmarks)

    async def ensure_loaded(self) -> bool:
        """
        Load the collection if it was never loaded or has gone stale.

        Concurrent callers share a single load. A failed load is logged
        and the previous collection stays in place.

        Returns:
            False if a needed reload failed, True otherwise
        """
        if not self.is_stale:
            return True

        async with self._lock:
            if not self.is_stale:
                return True
            try:
                await self.load()
            except Exception:
                logger.exception("Failed to load bookmarks")
                return False
        return True

    def invalidate(self) -> None:
        """Force the next ensure_loaded() to reload."""
        self._loaded_at = None

    def search(self, query: str, limit: Optional[int] = None) -> list[Bookmark]:
        """Ranked bookmarks for a query, best first."""
        return [bookmark for bookmark, _score in self.search_scored(query, limit)]

    def search_scored(self, query: str, limit: Optional[int] = None) -> list[tuple[Bookmark, int]]:
        """
        Search the collection using the configured mode.

        Args:
            query: Free text query
            limit: Maximum results (defaults depend on the mode)

        Returns:
            List of (bookmark, score) tuples, best first
        """
        if not query or not query.strip():
            return []

        bookmarks = self._bookmarks

        if self.mode == "substring":
            limit = self.substring_limit if limit is None else limit
        elif limit is None:
            limit = self.limit
        if limit <= 0:
            return []

        if self.mode == "substring":
            return self._substring_search(query, bookmarks, limit)
        if self.mode == "fuzzy":
            return self._fuzzy_search(query, bookmarks, limit)
        return self._ranked_search(query, bookmarks, limit)

    def _ranked_search(self, query: str, bookmarks, limit: int) -> list[tuple[Bookmark, int]]:
        scored = []
        for bookmark in bookmarks:
            score = score_bookmark(bookmark, query)
            if score > 0:
                scored.append((bookmark, score))

        # sorted() is stable: equal scores keep collection order
        scored = sorted(scored, key=lambda item: item[1], reverse=True)
        return scored[:limit]

    def _substring_search(self, query: str, bookmarks, limit: int) -> list[tuple[Bookmark, int]]:
        q = query.strip().lower()
        results = []
        for bookmark in bookmarks:
            if q in bookmark.title.lower() or q in bookmark.url.lower():
                results.append((bookmark, 1))
                if len(results) >= limit:
                    break
        return results

    def _fuzzy_search(self, query: str, bookmarks, limit: int) -> list[tuple[Bookmark, int]]:
        """Fuzzy search using rapidfuzz weighted ratio against title and domain."""
        choices = {i: f"{b.title} {b.domain}" for i, b in enumerate(bookmarks)}

        matches = process.extract(
            query.strip(),
            choices,
            scorer=fuzz.WRatio,
            processor=utils.default_process,
            limit=limit,
            score_cutoff=self.fuzzy_threshold,
        )

        # matches: list of (matched_string, score, key)
        return [(bookmarks[key], int(score)) for _matched, score, key in matches]


class StaticBookmarkProvider:
    """Serves a fixed bookmark tree."""

    def __init__(self, tree: Union[TreeNode, list]):
        self.tree = tree

    async def __call__(self) -> Union[TreeNode, list]:
        return self.tree


def chrome_bookmarks_path(profile: str = "Default") -> Path:
    """
    Get the path to Chrome's Bookmarks file for a profile.

    Falls back to Chromium's location on Linux when Chrome's is missing.
    """
    home = Path.home()
    if os.name == "nt":
        return home / "AppData" / "Local" / "Google" / "Chrome" / "User Data" / profile / "Bookmarks"
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / "Google" / "Chrome" / profile / "Bookmarks"

    chrome_path = home / ".config" / "google-chrome" / profile / "Bookmarks"
    if not chrome_path.exists():
        chrome_path = home / ".config" / "chromium" / profile / "Bookmarks"
    return chrome_path


class ChromeBookmarksProvider:
    """
    Reads Chrome's Bookmarks JSON file and converts it to TreeNodes.

    Chrome stores three roots (bookmark_bar, other, synced) whose nodes use
    "name"/"type"/"url"/"children" keys.
    """

    ROOTS = ("bookmark_bar", "other", "synced")

    def __init__(self, bookmarks_path: Optional[Path] = None, profile: str = "Default"):
        self.bookmarks_path = bookmarks_path or chrome_bookmarks_path(profile)

    async def __call__(self) -> list:
        return await asyncio.to_thread(self._read)

    def _read(self) -> list:
        with open(self.bookmarks_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        roots = data.get("roots", {})
        return [self._convert(roots[name]) for name in self.ROOTS if name in roots]

    def _convert(self, node: dict[str, Any]) -> TreeNode:
        converted: TreeNode = {"title": node.get("name", ""), "id": node.get("id", "")}
        if node.get("type") == "folder":
            converted["children"] = [self._convert(child) for child in node.get("children", [])]
        else:
            converted["url"] = node.get("url", "")
        return converted
