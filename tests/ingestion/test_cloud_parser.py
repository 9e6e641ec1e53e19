import asyncio
import json
import unittest

import httpx

from chat_context.ingestion.cloud_parser import CloudParser, RemoteLinkParser
from chat_context.ingestion.sources import FileSource


class CloudParserTests(unittest.TestCase):
    def test_file_upload(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": {"content": "parsed text"}})

        parser = CloudParser("license-1", api_origin="https://cloud.test/", transport=httpx.MockTransport(handler))
        result = asyncio.run(parser.parse(FileSource("report.pdf", b"%PDF", "application/pdf")))

        self.assertTrue(result.success)
        self.assertEqual("parsed text", result.content)
        self.assertEqual("/api/files/parse", seen[0].url.path)
        self.assertEqual("license-1", seen[0].headers["authorization"])

    def test_empty_content_is_unsuccessful(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": {}})

        parser = CloudParser("k", transport=httpx.MockTransport(handler))
        result = asyncio.run(parser.parse(FileSource("a.pdf", b"x")))
        self.assertFalse(result.success)

    def test_server_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        parser = CloudParser("k", transport=httpx.MockTransport(handler))
        with self.assertRaises(httpx.HTTPStatusError):
            asyncio.run(parser.parse(FileSource("a.pdf", b"x")))

    def test_remote_link_parser(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual("/api/links/parse", request.url.path)
            self.assertEqual({"url": "https://example.com"}, json.loads(request.content))
            return httpx.Response(200, json={"data": {"content": "page", "title": "Example"}})

        cloud = CloudParser("k", transport=httpx.MockTransport(handler))
        result = asyncio.run(RemoteLinkParser(cloud).parse("https://example.com"))

        self.assertEqual("page", result.content)
        self.assertEqual("Example", result.title)


if __name__ == "__main__":
    unittest.main()
