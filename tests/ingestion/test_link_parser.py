import asyncio
import unittest

import httpx

from chat_context.ingestion.link_parser import LocalLinkParser

_PAGE = (
    "<html><head><title>Hello Page</title><script>var x = 1;</script></head>"
    "<body><h1>Heading</h1><p>Para one</p><a href='https://other.example/'>other</a></body></html>"
)


def _parser(handler) -> LocalLinkParser:
    return LocalLinkParser(transport=httpx.MockTransport(handler))


class LocalLinkParserTests(unittest.TestCase):
    def test_html_page_yields_title_and_text(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"}, text=_PAGE)

        result = asyncio.run(_parser(handler).parse("https://example.com/page"))

        self.assertTrue(result.success)
        self.assertEqual("Hello Page", result.title)
        self.assertIn("Heading", result.content)
        self.assertIn("Para one", result.content)
        self.assertIn("other (https://other.example/)", result.content)
        self.assertNotIn("var x", result.content)

    def test_json_is_pretty_printed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"a": 1})

        result = asyncio.run(_parser(handler).parse("https://api.example.com/data"))

        self.assertEqual('{\n  "a": 1\n}', result.content)
        self.assertEqual("", result.title)

    def test_plain_text_passes_through(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-type": "text/plain"}, text="raw body")

        result = asyncio.run(_parser(handler).parse("http://example.com/file.txt"))
        self.assertEqual("raw body", result.content)

    def test_relative_links_resolve_against_final_url(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(301, headers={"location": "https://example.com/docs/new"})
            return httpx.Response(
                200,
                headers={"content-type": "text/html"},
                text="<body><main><p><a href='intro'>Intro</a></p></main></body>",
            )

        result = asyncio.run(_parser(handler).parse("https://example.com/old"))

        self.assertEqual("Intro (https://example.com/docs/intro)", result.content)

    def test_http_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="missing")

        with self.assertRaises(httpx.HTTPStatusError):
            asyncio.run(_parser(handler).parse("https://example.com/missing"))

    def test_unsupported_scheme_raises(self) -> None:
        with self.assertRaises(ValueError):
            asyncio.run(LocalLinkParser().parse("ftp://example.com/file"))


if __name__ == "__main__":
    unittest.main()
