import asyncio
import io
import unittest
import zipfile

import httpx

from chat_context.ingestion.mineru_parser import MineruError, MineruParser
from chat_context.ingestion.sources import FileSource


def _zip_with(name: str, text: str) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(name, text)
    return buf.getvalue()


class _MineruServer:
    def __init__(self, states: list[dict], archive: bytes = b""):
        self.states = list(states)
        self.archive = archive
        self.requests: list[httpx.Request] = []
        self.on_poll = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "POST" and path == "/api/v4/file-urls/batch":
            return httpx.Response(
                200,
                json={"code": 0, "data": {"batch_id": "b1", "file_urls": ["https://upload.test/put/1"]}},
            )
        if request.method == "PUT" and request.url.host == "upload.test":
            return httpx.Response(200)
        if request.method == "GET" and path == "/api/v4/extract-results/batch/b1":
            if self.on_poll is not None:
                self.on_poll()
            state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
            return httpx.Response(200, json={"code": 0, "data": {"extract_result": [state]}})
        if request.url.host == "cdn.test":
            return httpx.Response(200, content=self.archive)
        return httpx.Response(404)


def _parser(server: _MineruServer) -> MineruParser:
    return MineruParser("tok", poll_interval_seconds=0.01, transport=httpx.MockTransport(server))


_PDF = FileSource("paper.pdf", b"%PDF-1.7", "application/pdf")


class MineruParserTests(unittest.TestCase):
    def test_polls_until_done_and_reads_markdown(self) -> None:
        server = _MineruServer(
            [{"state": "running"}, {"state": "done", "full_zip_url": "https://cdn.test/r.zip"}],
            archive=_zip_with("paper/full.md", "# Paper\n\nBody"),
        )

        result = asyncio.run(_parser(server).parse(_PDF))

        self.assertTrue(result.success)
        self.assertEqual("# Paper\n\nBody", result.content)
        self.assertEqual("Bearer tok", server.requests[0].headers["authorization"])
        self.assertEqual(b"%PDF-1.7", server.requests[1].content)

    def test_failed_extraction(self) -> None:
        server = _MineruServer([{"state": "failed", "err_msg": "bad file"}])
        result = asyncio.run(_parser(server).parse(_PDF))
        self.assertFalse(result.success)
        self.assertFalse(result.cancelled)

    def test_cancel_before_upload(self) -> None:
        server = _MineruServer([{"state": "running"}])
        event = asyncio.Event()
        event.set()

        result = asyncio.run(_parser(server).parse(_PDF, event))

        self.assertTrue(result.cancelled)
        self.assertEqual(["POST"], [r.method for r in server.requests])

    def test_cancel_while_polling(self) -> None:
        server = _MineruServer([{"state": "running"}])

        async def scenario():
            event = asyncio.Event()
            server.on_poll = event.set
            return await _parser(server).parse(_PDF, event)

        result = asyncio.run(scenario())

        self.assertTrue(result.cancelled)
        self.assertFalse(result.success)

    def test_api_error_code_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"code": 401, "msg": "invalid token"})

        parser = MineruParser("bad", transport=httpx.MockTransport(handler))
        with self.assertRaises(MineruError):
            asyncio.run(parser.parse(_PDF))


if __name__ == "__main__":
    unittest.main()
