from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from fintrack.errors import ApiError
from fintrack.logging_utils import get_stream_logger
from fintrack.settings import DEFAULT_QUOTE_URL

logger = get_stream_logger(__name__)

NO_CACHE_MESSAGE = "Failed to fetch quote and no cache available"


class QuoteSourceUnavailable(RuntimeError):
    """Raised when the upstream quote API cannot produce a quote."""


@dataclass(frozen=True)
class Quote:
    quote: str
    author: str

    def as_dict(self) -> dict[str, str]:
        return {"quote": self.quote, "author": self.author}


@dataclass
class QuoteCache:
    """Single slot holding the last successfully fetched quote. Never expires."""

    value: Quote | None = None

    def store(self, quote: Quote) -> None:
        self.value = quote

    def get(self) -> Quote | None:
        return self.value


@dataclass(frozen=True)
class ZenQuotesSource:
    url: str = DEFAULT_QUOTE_URL
    timeout_seconds: float = 8

    def fetch(self) -> Quote:
        request = Request(self.url, headers={"Accept": "application/json", "User-Agent": "fintrack"})
        try:
            with urlopen(request, timeout=self.timeout_seconds) as response:
                payload = json.load(response)
        except (HTTPError, URLError, TimeoutError, OSError, json.JSONDecodeError) as exc:
            raise QuoteSourceUnavailable("Quote API unavailable") from exc
        return parse_quote_payload(payload)


def parse_quote_payload(payload: Any) -> Quote:
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
        raise QuoteSourceUnavailable("Quote response has an unexpected shape")
    entry = payload[0]
    quote = entry.get("q")
    author = entry.get("a")
    if not isinstance(quote, str) or not isinstance(author, str):
        raise QuoteSourceUnavailable("Quote response missing text or author")
    return Quote(quote=quote, author=author)


@dataclass
class QuoteProxy:
    fetch: Callable[[], Quote]
    cache: QuoteCache = field(default_factory=QuoteCache)

    def get_quote(self) -> dict[str, Any]:
        try:
            quote = self.fetch()
        except Exception as exc:
            cached = self.cache.get()
            if cached is None:
                logger.warning("Quote fetch failed with empty cache: %s", exc)
                raise ApiError(500, NO_CACHE_MESSAGE) from exc
            logger.warning("Quote fetch failed, serving cached quote: %s", exc)
            return {**cached.as_dict(), "cached": True}

        self.cache.store(quote)
        return quote.as_dict()


def build_quote_proxy(url: str = DEFAULT_QUOTE_URL, timeout_seconds: float = 8) -> QuoteProxy:
    source = ZenQuotesSource(url=url, timeout_seconds=timeout_seconds)
    return QuoteProxy(fetch=source.fetch)
