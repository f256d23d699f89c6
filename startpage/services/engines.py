"""
Search engine catalogue and the enabled-engine set.

Each engine has a display name, a search URL template and, where the
engine exposes one, an OpenSearch-style suggestion endpoint:

  google      → suggestqueries.google.com
  bing        → api.bing.com/osjson.aspx
  baidu       → suggestion.baidu.com (opensearch action)
  duckduckgo  → duckduckgo.com/ac (list type)
  sogou       → search only, no suggestions

Engines can be enabled and disabled at runtime, but at least one engine
always stays enabled.
"""

import urllib.parse
from typing import Optional

from loguru import logger

from startpage.errors import ConfigurationError

DEFAULT_ENGINES = {
    "google": {
        "name": "Google",
        "url": "https://www.google.com/search?q={query}",
        "suggest_url": "https://suggestqueries.google.com/complete/search?client=firefox&q={query}",
    },
    "bing": {
        "name": "Bing",
        "url": "https://www.bing.com/search?q={query}",
        "suggest_url": "https://api.bing.com/osjson.aspx?query={query}",
    },
    "baidu": {
        "name": "Baidu",
        "url": "https://www.baidu.com/s?wd={query}",
        "suggest_url": "https://suggestion.baidu.com/su?action=opensearch&wd={query}",
    },
    "duckduckgo": {
        "name": "DuckDuckGo",
        "url": "https://duckduckgo.com/?q={query}",
        "suggest_url": "https://duckduckgo.com/ac/?type=list&q={query}",
    },
    "sogou": {
        "name": "Sogou",
        "url": "https://www.sogou.com/web?query={query}",
    },
}


def build_search_url(engine: dict, query: str) -> str:
    """Fill an engine's search URL template with a quoted query."""
    return engine["url"].format(query=urllib.parse.quote_plus(query))


class EngineSet:
    """
    Ordered engine → enabled mapping plus the primary engine.

    Order is the order engines were configured in; fan-out results follow
    it. Mutations that would leave no engine enabled are rejected and the
    previous state is kept.
    """

    def __init__(self, enabled: dict, primary: Optional[str] = None):
        if not enabled:
            raise ConfigurationError("at least one engine must be configured")
        if not any(enabled.values()):
            raise ConfigurationError("at least one engine must be enabled")

        self._enabled = {name: bool(flag) for name, flag in enabled.items()}
        self._primary = None
        self.set_primary(primary or next(iter(self._enabled)))

    @classmethod
    def from_settings(cls, settings: dict) -> "EngineSet":
        """Build from the [engines] settings section."""
        section = settings.get("engines", {})
        return cls(section.get("enabled", {}), section.get("primary"))

    @property
    def primary(self) -> str:
        return self._primary

    @property
    def names(self) -> list[str]:
        """All configured engines, enabled or not."""
        return list(self._enabled)

    def enabled(self) -> list[str]:
        """Enabled engines in configuration order."""
        return [name for name, flag in self._enabled.items() if flag]

    def is_enabled(self, engine: str) -> bool:
        return self._enabled.get(engine, False)

    def as_dict(self) -> dict:
        return dict(self._enabled)

    def set_primary(self, engine: str) -> None:
        if engine not in self._enabled:
            raise ConfigurationError(f"unknown engine: {engine}")
        self._primary = engine

    def set_enabled(self, engine: str, enabled: bool) -> bool:
        """
        Enable or disable one engine.

        Returns:
            True if applied, False if rejected because it would disable
            the last enabled engine.
        """
        if engine not in self._enabled:
            raise ConfigurationError(f"unknown engine: {engine}")

        if not enabled and self.enabled() == [engine]:
            logger.warning(f"Refusing to disable '{engine}': it is the last enabled engine")
            return False

        self._enabled[engine] = bool(enabled)
        return True

    def replace(self, enabled: dict) -> bool:
        """
        Replace the flags of several engines at once.

        Unknown engines raise ConfigurationError; a mapping that leaves
        nothing enabled is rejected. Either way nothing is changed.
        """
        unknown = [name for name in enabled if name not in self._enabled]
        if unknown:
            raise ConfigurationError(f"unknown engines: {', '.join(unknown)}")

        candidate = dict(self._enabled)
        candidate.update({name: bool(flag) for name, flag in enabled.items()})
        if not any(candidate.values()):
            logger.warning("Refusing engine update that would disable every engine")
            return False

        self._enabled = candidate
        return True
