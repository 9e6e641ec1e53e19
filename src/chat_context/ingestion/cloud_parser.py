from __future__ import annotations

import httpx
from loguru import logger

from chat_context.ingestion.parser import ParseResult
from chat_context.ingestion.sources import FileSource

DEFAULT_API_ORIGIN = "https://api.chatboxai.app"
_TIMEOUT_SECONDS = 120


class CloudParser:
    """Hosted parsing service: uploads files and resolves links for licensed users."""

    def __init__(
        self,
        license_key: str,
        *,
        api_origin: str = DEFAULT_API_ORIGIN,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._license_key = license_key
        self._api_origin = api_origin.rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._api_origin,
            headers={"Authorization": self._license_key},
            timeout=_TIMEOUT_SECONDS,
            transport=self._transport,
        )

    async def parse(self, file: FileSource) -> ParseResult:
        logger.debug(f"Uploading {file.name!r} ({file.size:,} bytes) to cloud parser")
        async with self._client() as client:
            response = await client.post(
                "/api/files/parse",
                files={"file": (file.name, file.data, file.mime_type or "application/octet-stream")},
            )
        response.raise_for_status()
        data = response.json().get("data") or {}
        content = str(data.get("content") or "")
        return ParseResult(success=bool(content), content=content, title=str(data.get("title") or ""))

    async def parse_link(self, url: str) -> ParseResult:
        async with self._client() as client:
            response = await client.post("/api/links/parse", json={"url": url})
        response.raise_for_status()
        data = response.json().get("data") or {}
        return ParseResult(
            success=True,
            content=str(data.get("content") or ""),
            title=str(data.get("title") or ""),
        )


class RemoteLinkParser:
    """Adapts ``CloudParser.parse_link`` to the link parser protocol."""

    def __init__(self, cloud: CloudParser):
        self._cloud = cloud

    async def parse(self, url: str) -> ParseResult:
        return await self._cloud.parse_link(url)
