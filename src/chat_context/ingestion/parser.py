from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, runtime_checkable

from chat_context.ingestion.sources import FileSource


@dataclass(frozen=True)
class ParseResult:
    success: bool
    content: str = ""
    title: str = ""
    cancelled: bool = False


@runtime_checkable
class FileParser(Protocol):
    async def parse(self, file: FileSource) -> ParseResult:
        """Return normalized text for ``file``. May raise on transport errors."""
        ...


@runtime_checkable
class CancellableFileParser(Protocol):
    async def parse(self, file: FileSource, cancel_event: asyncio.Event | None = None) -> ParseResult: ...


@runtime_checkable
class LinkParser(Protocol):
    async def parse(self, url: str) -> ParseResult: ...


class DocumentParserType(StrEnum):
    NONE = "none"
    LOCAL = "local"
    CHATBOX_AI = "chatbox-ai"
    MINERU = "mineru"


@dataclass(frozen=True)
class DocumentParserConfig:
    type: str = DocumentParserType.LOCAL
    mineru_api_token: str | None = None
