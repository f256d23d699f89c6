"""Exception types for the start page core."""


class StartPageError(Exception):
    """Base class for all start page errors."""
    pass


class ConfigurationError(StartPageError, ValueError):
    """A command, engine or setting was configured with an invalid value."""
    pass


class ProviderError(StartPageError):
    """An external provider (weather, translation, suggestions) failed."""
    pass


class SuggestionCancelled(StartPageError):
    """A suggestion request was superseded by a newer one for the same engine."""

    def __init__(self, engine: str):
        super().__init__(f"suggestion request for '{engine}' was cancelled")
        self.engine = engine
