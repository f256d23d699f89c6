"""
Default Search Handler - Fallback for input without a command prefix.

Collects suggestions from every enabled engine and the primary engine's
search URL for submitting the query as-is.
"""

from startpage.search.router import CommandHandler, CommandResult
from startpage.services.engines import DEFAULT_ENGINES, EngineSet, build_search_url
from startpage.services.suggestions import SuggestionAggregator


class DefaultSearchHandler(CommandHandler):
    """Query suggestions from all enabled engines."""

    name = "default"

    def __init__(self, aggregator: SuggestionAggregator, engines: EngineSet):
        self.aggregator = aggregator
        self.engines = engines

    async def execute(self, args: str) -> CommandResult:
        suggestions = await self.aggregator.fetch_all(args)

        primary = DEFAULT_ENGINES.get(self.engines.primary)
        search_url = build_search_url(primary, args) if primary and args else ""

        return CommandResult(
            kind=self.name,
            success=True,
            query=args,
            data={
                "suggestions": suggestions,
                "engine": self.engines.primary,
                "search_url": search_url,
            },
        )
