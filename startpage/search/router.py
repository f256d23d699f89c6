"""
Command Router - Dispatches search-box input to prefix-registered handlers.

Handlers are registered under a one- or two-character prefix. Routing:

  1. Empty input goes straight to the fallback (default search).
  2. First character matches a prefix → strip it, trim, run that handler.
     A one-character match always wins; two-character prefixes are not
     consulted.
  3. Otherwise first two characters match → strip them, trim, run.
  4. Otherwise the fallback runs with the trimmed input.

Handlers never raise at the caller: anything escaping execute() is logged
and turned into a failed CommandResult.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from startpage.errors import ConfigurationError


@dataclass
class CommandResult:
    """Structured outcome of handling one input."""
    kind: str  # calculator, weather, translate, bookmark, web, default
    success: bool
    query: str = ""
    data: Any = None
    title: str = ""
    error: str = ""


class CommandHandler(ABC):
    """Base class for all command handlers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Result kind tag used by the presentation layer."""
        ...

    @abstractmethod
    async def execute(self, args: str) -> CommandResult:
        """Process the input left after the prefix was stripped."""
        ...

    def failure(self, args: str, error: str) -> CommandResult:
        """Failed result tagged with this handler's kind."""
        return CommandResult(kind=self.name, success=False, query=args, error=error)


class CommandRouter:
    """Routes input to the handler registered for its prefix."""

    PREFIX_LENGTHS = (1, 2)

    def __init__(self, fallback: Optional[CommandHandler] = None):
        self._commands: dict[str, CommandHandler] = {}
        self.fallback = fallback

    @property
    def commands(self) -> dict[str, CommandHandler]:
        return dict(self._commands)

    def register(self, prefix: str, handler: CommandHandler) -> None:
        """Register (or replace) the handler for a prefix."""
        if len(prefix) not in self.PREFIX_LENGTHS:
            raise ConfigurationError(
                f"Command prefix must be 1 or 2 characters, got {prefix!r}"
            )
        if prefix in self._commands:
            logger.debug(f"Replacing handler for prefix {prefix!r}")
        self._commands[prefix] = handler

    def unregister(self, prefix: str) -> None:
        self._commands.pop(prefix, None)

    def resolve(self, text: str) -> tuple[Optional[CommandHandler], str]:
        """
        Pick the handler for an input without running it.

        Returns:
            Tuple of (handler, remainder). handler is None when the input
            falls through to default search.
        """
        if not text:
            return None, ""

        handler = self._commands.get(text[0])
        if handler is not None:
            return handler, text[1:].strip()

        if len(text) >= 2:
            handler = self._commands.get(text[:2])
            if handler is not None:
                return handler, text[2:].strip()

        return None, text.strip()

    async def route(self, text: str) -> CommandResult:
        """
        Handle one line of input.

        Args:
            text: Raw search-box input

        Returns:
            The handler's CommandResult. Without a fallback, unmatched
            input yields a successful "default" result carrying the query.
        """
        handler, remainder = self.resolve(text)

        if handler is None:
            handler = self.fallback
            if handler is None:
                return CommandResult(kind="default", success=True, query=remainder)

        try:
            return await handler.execute(remainder)
        except Exception:
            logger.exception(f"Handler '{handler.name}' failed for {remainder!r}")
            return handler.failure(remainder, "unexpected error")
