# Startpage Utilities Package
"""
Shared utility functions and helpers for the start page core.
"""

from .helpers import load_settings, extract_domain, format_bookmark_path, favicon_url

__all__ = ["load_settings", "extract_domain", "format_bookmark_path", "favicon_url"]
