"""
Translate Handler - "tr [src>dst] text".

  tr hello world        → auto-detect → configured locale
  tr en>de hello world  → English → German
  tr >fr bonjour        → auto-detect → French
"""

import re
from dataclasses import dataclass

import httpx
from loguru import logger

from startpage.errors import ProviderError
from startpage.search.router import CommandHandler, CommandResult

LANG_PAIR = re.compile(r"^([A-Za-z]{0,3}(?:-[A-Za-z]{2,4})?)>([A-Za-z]{2,3}(?:-[A-Za-z]{2,4})?)$")


@dataclass
class TranslateRequest:
    source: str
    target: str
    text: str


def parse_translate_args(args: str, locale: str = "en") -> TranslateRequest:
    """
    Split optional "src>dst" language pair from the text.

    The pair must be the first whitespace-separated token; anything else
    containing ">" is plain text.
    """
    parts = args.strip().split(None, 1)
    if parts:
        match = LANG_PAIR.match(parts[0])
        if match:
            source, target = match.groups()
            text = parts[1] if len(parts) > 1 else ""
            return TranslateRequest(source=source or "auto", target=target, text=text.strip())

    return TranslateRequest(source="auto", target=locale, text=args.strip())


class GoogleTranslateProvider:
    """Translation provider using the public translate.googleapis.com endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str = "https://translate.googleapis.com/translate_a/single",
        timeout: float = 10.0,
    ):
        self.client = client
        self.url = url
        self.timeout = timeout

    async def translate(self, text: str, source: str, target: str) -> str:
        params = {"client": "gtx", "sl": source, "tl": target, "dt": "t", "q": text}
        try:
            response = await self.client.get(self.url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"Translation request failed: {e}") from e

        # data[0] holds [translated, original, ...] per sentence
        try:
            return "".join(segment[0] for segment in data[0] if segment and segment[0])
        except (IndexError, TypeError) as e:
            raise ProviderError(f"Unexpected translation payload: {e!r}") from e


class TranslateHandler(CommandHandler):
    """Translate text for 'tr ...'."""

    name = "translate"

    def __init__(self, provider, locale: str = "en"):
        self.provider = provider
        self.locale = locale

    async def execute(self, args: str) -> CommandResult:
        request = parse_translate_args(args, self.locale)
        if not request.text:
            return self.failure(args, "nothing to translate")

        try:
            translated = await self.provider.translate(request.text, request.source, request.target)
        except Exception as e:
            logger.warning(f"Translation {request.source}>{request.target} failed: {e}")
            return self.failure(args, "translation failed")

        return CommandResult(
            kind=self.name,
            success=True,
            query=request.text,
            data={
                "original": request.text,
                "translated": translated,
                "source": request.source,
                "target": request.target,
            },
            title=translated,
        )
