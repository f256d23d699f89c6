"""
Bookmark Search Handler - Ranked bookmark matches for "/<query>".
"""

from startpage.search.router import CommandHandler, CommandResult
from startpage.services.bookmark_index import BookmarkIndex
from startpage.utils.helpers import favicon_url, format_bookmark_path


class BookmarkSearchHandler(CommandHandler):
    """Search the bookmark index, loading it first if needed."""

    name = "bookmark"

    def __init__(self, index: BookmarkIndex, limit: int = None):
        self.index = index
        self.limit = limit

    async def execute(self, args: str) -> CommandResult:
        loaded = await self.index.ensure_loaded()
        if not loaded and not self.index.bookmarks:
            return self.failure(args, "bookmarks unavailable")

        matches = [
            {
                "bookmark": bookmark,
                "score": score,
                "path": format_bookmark_path(bookmark.path),
                "favicon": favicon_url(bookmark.url),
            }
            for bookmark, score in self.index.search_scored(args, self.limit)
        ]

        return CommandResult(
            kind=self.name,
            success=True,
            query=args,
            data=matches,
            title=f"{len(matches)} bookmark{'s' if len(matches) != 1 else ''}",
        )
