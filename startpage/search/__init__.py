"""
Search package - Command routing and handler framework.

Input is dispatched by prefix to a handler (calculator, weather,
translate, bookmarks, ...) or falls through to default search.
"""

from .router import CommandRouter, CommandHandler, CommandResult

__all__ = ["CommandRouter", "CommandHandler", "CommandResult"]
