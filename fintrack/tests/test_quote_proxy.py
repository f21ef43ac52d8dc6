import io
import json
import unittest
from unittest import mock
from urllib.error import URLError

from fintrack.errors import ApiError
from fintrack.quote_proxy import (
    NO_CACHE_MESSAGE,
    Quote,
    QuoteCache,
    QuoteProxy,
    QuoteSourceUnavailable,
    ZenQuotesSource,
    parse_quote_payload,
)


class ScriptedSource:
    def __init__(self, *results) -> None:
        self.results = list(results)

    def fetch(self) -> Quote:
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class QuoteProxyTests(unittest.TestCase):
    def test_fresh_quote_is_returned_and_cached(self) -> None:
        proxy = QuoteProxy(fetch=ScriptedSource(Quote("Be kind.", "Anon")).fetch)

        result = proxy.get_quote()

        self.assertEqual(result, {"quote": "Be kind.", "author": "Anon"})
        self.assertEqual(proxy.cache.get(), Quote("Be kind.", "Anon"))

    def test_failure_serves_previous_quote_as_cached(self) -> None:
        source = ScriptedSource(
            Quote("Stay curious.", "Someone"),
            QuoteSourceUnavailable("down"),
        )
        proxy = QuoteProxy(fetch=source.fetch)

        proxy.get_quote()
        result = proxy.get_quote()

        self.assertEqual(
            result,
            {"quote": "Stay curious.", "author": "Someone", "cached": True},
        )

    def test_failure_without_cache_raises_500(self) -> None:
        proxy = QuoteProxy(fetch=ScriptedSource(QuoteSourceUnavailable("down")).fetch)

        with self.assertRaises(ApiError) as ctx:
            proxy.get_quote()

        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.to_body(), {"error": NO_CACHE_MESSAGE})

    def test_newer_success_overwrites_cache(self) -> None:
        cache = QuoteCache()
        source = ScriptedSource(Quote("One", "A"), Quote("Two", "B"), RuntimeError("boom"))
        proxy = QuoteProxy(fetch=source.fetch, cache=cache)

        proxy.get_quote()
        proxy.get_quote()

        self.assertEqual(proxy.get_quote()["quote"], "Two")


class ZenQuotesSourceTests(unittest.TestCase):
    def test_parses_first_entry(self) -> None:
        quote = parse_quote_payload([{"q": "Hello", "a": "World", "h": "<p>"}])

        self.assertEqual(quote, Quote("Hello", "World"))

    def test_rejects_unexpected_shape(self) -> None:
        for payload in ([], {"q": "x"}, [{"q": "x"}], [1]):
            with self.assertRaises(QuoteSourceUnavailable):
                parse_quote_payload(payload)

    def test_fetch_reads_json_response(self) -> None:
        body = io.BytesIO(json.dumps([{"q": "Keep going", "a": "Me"}]).encode("utf-8"))
        with mock.patch("fintrack.quote_proxy.urlopen", return_value=body) as opener:
            quote = ZenQuotesSource(url="http://quotes.test/random", timeout_seconds=2).fetch()

        self.assertEqual(quote, Quote("Keep going", "Me"))
        self.assertEqual(opener.call_args.kwargs["timeout"], 2)

    def test_network_error_is_unavailable(self) -> None:
        with mock.patch("fintrack.quote_proxy.urlopen", side_effect=URLError("offline")):
            with self.assertRaises(QuoteSourceUnavailable):
                ZenQuotesSource().fetch()


if __name__ == "__main__":
    unittest.main()
