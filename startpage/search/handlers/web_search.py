"""
Site Search Handler - User-defined search shortcuts.

Reads [commands.<prefix>] tables from settings.toml and registers each
one under its prefix.

Example settings.toml:
    [commands.gh]
    name = "GitHub"
    url = "https://github.com/search?q={query}"

    [commands.w]
    name = "Wikipedia"
    url = "https://en.wikipedia.org/w/index.php?search={query}"

Usage: "gh fastapi", "w python"
"""

import urllib.parse

from loguru import logger

from startpage.search.router import CommandHandler, CommandResult, CommandRouter


class SiteSearchHandler(CommandHandler):
    """Build a search URL for one site."""

    name = "web"

    def __init__(self, site: str, url: str):
        self.site = site
        self.url = url

    async def execute(self, args: str) -> CommandResult:
        if not args:
            return self.failure(args, f"type a query to search {self.site}")

        url = self.url.format(query=urllib.parse.quote_plus(args))
        return CommandResult(
            kind=self.name,
            success=True,
            query=args,
            data={"site": self.site, "url": url},
            title=f"Search {self.site}: {args}",
        )


def load_site_commands(settings: dict) -> dict[str, SiteSearchHandler]:
    """
    Build site-search handlers from the [commands] settings section.

    Entries without a "url" containing {query}, or whose prefix is not one
    or two characters, are skipped with a warning.
    """
    handlers = {}
    for prefix, cmd in settings.get("commands", {}).items():
        if not isinstance(cmd, dict) or "{query}" not in cmd.get("url", ""):
            logger.warning(f"Skipping malformed command '{prefix}': missing 'url' with {{query}}")
            continue
        if len(prefix) not in CommandRouter.PREFIX_LENGTHS:
            logger.warning(f"Skipping command '{prefix}': prefix must be 1 or 2 characters")
            continue
        handlers[prefix] = SiteSearchHandler(cmd.get("name", prefix), cmd["url"])
    return handlers
