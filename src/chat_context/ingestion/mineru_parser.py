from __future__ import annotations

import asyncio
import io
import zipfile

import httpx
from loguru import logger

from chat_context.ingestion.parser import ParseResult
from chat_context.ingestion.sources import FileSource

MINERU_API_ORIGIN = "https://mineru.net"
_TIMEOUT_SECONDS = 60
_DEFAULT_POLL_INTERVAL_SECONDS = 3.0


class MineruError(RuntimeError):
    pass


class MineruParser:
    """Document extraction through the MinerU batch API.

    The flow is: request an upload URL, PUT the file, poll the batch until the
    extraction is done, then read ``full.md`` out of the result archive.
    Setting ``cancel_event`` stops polling and reports a cancelled parse.
    """

    def __init__(
        self,
        api_token: str,
        *,
        api_origin: str = MINERU_API_ORIGIN,
        poll_interval_seconds: float = _DEFAULT_POLL_INTERVAL_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_token = api_token
        self._api_origin = api_origin.rstrip("/")
        self._poll_interval_seconds = poll_interval_seconds
        self._transport = transport

    async def parse(self, file: FileSource, cancel_event: asyncio.Event | None = None) -> ParseResult:
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS, transport=self._transport) as client:
            batch_id, upload_url = await self._request_upload_url(client, file)

            if _is_set(cancel_event):
                return ParseResult(success=False, cancelled=True)

            upload = await client.put(upload_url, content=file.data)
            upload.raise_for_status()
            logger.debug(f"MinerU upload complete: {file.name!r}, batch={batch_id}")

            while True:
                if await self._wait_or_cancelled(cancel_event):
                    logger.info(f"MinerU parse cancelled: {file.name!r}")
                    return ParseResult(success=False, cancelled=True)

                result = await self._fetch_result(client, batch_id)
                state = result.get("state", "")
                if state == "done":
                    archive = await client.get(result["full_zip_url"])
                    archive.raise_for_status()
                    content = _read_markdown(archive.content)
                    return ParseResult(success=bool(content), content=content)
                if state == "failed":
                    logger.warning(f"MinerU extraction failed for {file.name!r}: {result.get('err_msg', '')}")
                    return ParseResult(success=False)

    async def _request_upload_url(self, client: httpx.AsyncClient, file: FileSource) -> tuple[str, str]:
        response = await client.post(
            f"{self._api_origin}/api/v4/file-urls/batch",
            headers=self._auth_headers(),
            json={"files": [{"name": file.name, "is_ocr": True}], "language": "auto"},
        )
        data = _unwrap(response)
        urls = data.get("file_urls") or []
        if not urls:
            raise MineruError("MinerU returned no upload URL")
        return str(data["batch_id"]), str(urls[0])

    async def _fetch_result(self, client: httpx.AsyncClient, batch_id: str) -> dict:
        response = await client.get(
            f"{self._api_origin}/api/v4/extract-results/batch/{batch_id}",
            headers=self._auth_headers(),
        )
        results = _unwrap(response).get("extract_result") or []
        return results[0] if results else {}

    async def _wait_or_cancelled(self, cancel_event: asyncio.Event | None) -> bool:
        if cancel_event is None:
            await asyncio.sleep(self._poll_interval_seconds)
            return False
        if cancel_event.is_set():
            return True
        try:
            await asyncio.wait_for(cancel_event.wait(), self._poll_interval_seconds)
        except TimeoutError:
            return False
        return True

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_token}"}


def _is_set(cancel_event: asyncio.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def _unwrap(response: httpx.Response) -> dict:
    response.raise_for_status()
    body = response.json()
    if body.get("code") != 0:
        raise MineruError(f"MinerU error {body.get('code')}: {body.get('msg', '')}")
    return body.get("data") or {}


def _read_markdown(archive: bytes) -> str:
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        names = zf.namelist()
        target = next((n for n in names if n.endswith("full.md")), None)
        if target is None:
            target = next((n for n in names if n.endswith(".md")), None)
        if target is None:
            raise MineruError("MinerU result archive has no markdown output")
        return zf.read(target).decode("utf-8", errors="replace")
