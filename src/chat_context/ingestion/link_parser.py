import json
from urllib.parse import urlparse

import httpx
from loguru import logger

from chat_context.ingestion.html_text import extract_title, html_to_text
from chat_context.ingestion.parser import ParseResult

_MAX_RESPONSE_BYTES = 5_000_000
_TIMEOUT_SECONDS = 30
_MAX_REDIRECTS = 5

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


class LocalLinkParser:
    """Fetches a URL over HTTP and reduces it to readable text."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    async def parse(self, url: str) -> ParseResult:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"Unsupported URL scheme: {parsed.scheme or '(none)'}")

        async with httpx.AsyncClient(
            headers=_HEADERS,
            timeout=_TIMEOUT_SECONDS,
            follow_redirects=True,
            max_redirects=_MAX_REDIRECTS,
            transport=self._transport,
        ) as client:
            response = await client.get(url)

        if response.status_code >= 400:
            raise httpx.HTTPStatusError(
                f"HTTP {response.status_code} fetching {url}",
                request=response.request,
                response=response,
            )

        if len(response.content) > _MAX_RESPONSE_BYTES:
            raise ValueError(f"Response too large ({len(response.content):,} bytes, max {_MAX_RESPONSE_BYTES:,})")

        content_type = response.headers.get("content-type", "")
        logger.debug(f"Fetched {url}: status={response.status_code}, content_type={content_type!r}")

        title = ""
        if "text/html" in content_type or "application/xhtml" in content_type:
            title = extract_title(response.text)
            content = html_to_text(response.text, str(response.url))
        elif "application/json" in content_type:
            try:
                content = json.dumps(response.json(), indent=2, ensure_ascii=False)
            except ValueError:
                content = response.text
        else:
            content = response.text

        return ParseResult(success=True, content=content, title=title)
