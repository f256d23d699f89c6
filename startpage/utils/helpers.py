"""
Helper utilities for the start page core.

Provides common functions used across services and handlers:
- Settings loading with defaults
- URL helpers (domain extraction, favicon lookup)
- Bookmark path formatting
"""

import re
from pathlib import Path
from typing import Dict, Any, Optional
from urllib.parse import urlsplit, quote

import toml
from loguru import logger


DEFAULT_SETTINGS: Dict[str, Any] = {
    "engines": {
        "primary": "google",
        "enabled": {
            "google": True,
            "bing": True,
            "baidu": True,
            "duckduckgo": False,
        },
    },
    "bookmarks": {
        "file": "",
        "profile": "Default",
        "cache_seconds": 300,
        "mode": "ranked",
        "limit": 5,
        "substring_limit": 20,
        "fuzzy_threshold": 50,
    },
    "suggestions": {
        "timeout": 3.0,
        "max_results": 8,
        "offline": False,
    },
    "weather": {
        "url": "https://wttr.in",
        "default_city": "beijing",
        "cache_seconds": 1800,
        "timeout": 10.0,
    },
    "translate": {
        "url": "https://translate.googleapis.com/translate_a/single",
        "locale": "en",
        "timeout": 10.0,
    },
    "commands": {},
}


def default_settings_path() -> Path:
    """Location of the user settings file (data/settings.toml at the repo root)."""
    return Path(__file__).parent.parent.parent / "data" / "settings.toml"


def load_settings(settings_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load start page settings from a TOML file.

    Args:
        settings_path: File to read. Defaults to data/settings.toml.

    Returns:
        Dictionary containing settings with defaults applied

    Example settings structure:
        [engines]
        primary = "bing"

        [engines.enabled]
        google = true
        bing = true
        baidu = false

        [bookmarks]
        cache_seconds = 120
        mode = "ranked"

        [commands.gh]
        name = "GitHub"
        url = "https://github.com/search?q={query}"
    """
    if settings_path is None:
        settings_path = default_settings_path()

    if not settings_path.exists():
        logger.debug(f"Settings file not found at {settings_path}, using defaults")
        return _deep_merge(DEFAULT_SETTINGS, {})

    try:
        loaded = toml.load(settings_path)
    except (OSError, toml.TomlDecodeError) as e:
        logger.warning(f"Could not load settings from {settings_path}: {e}")
        return _deep_merge(DEFAULT_SETTINGS, {})

    settings = _deep_merge(DEFAULT_SETTINGS, loaded)

    # Engine order drives fan-out order, so a user table replaces the default one
    enabled = loaded.get("engines", {}).get("enabled")
    if isinstance(enabled, dict) and enabled:
        settings["engines"]["enabled"] = dict(enabled)

    return settings


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary with defaults
        override: Dictionary with overrides

    Returns:
        Merged dictionary (override takes precedence). Nested
        dictionaries from base are copied, never shared.
    """
    result = {}

    for key, value in base.items():
        result[key] = _deep_merge(value, {}) if isinstance(value, dict) else value

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def extract_domain(url: str) -> str:
    """
    Extract the hostname from a URL.

    Strings without a scheme are not URLs; they are returned unchanged
    so they still take part in domain matching.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return url

    if not parts.scheme:
        return url
    return parts.hostname or ""


def format_bookmark_path(path: str) -> str:
    """Strip dangling '>' separators from a folder breadcrumb."""
    if not path:
        return ""
    return re.sub(r"^\s*>\s*|\s*>\s*$", "", path)


def favicon_url(url: str, size: int = 64) -> str:
    """Favicon service URL for a bookmark, or "" when the URL has no host."""
    host = extract_domain(url)
    if not host or host == url:
        return ""
    return f"https://www.google.com/s2/favicons?domain={quote(host)}&sz={size}"
