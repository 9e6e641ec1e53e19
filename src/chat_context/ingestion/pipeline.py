from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from loguru import logger

from chat_context.ingestion.cloud_parser import CloudParser, RemoteLinkParser
from chat_context.ingestion.errors import IngestionError, IngestionErrorCode, is_silent_error
from chat_context.ingestion.html_text import find_title_tag
from chat_context.ingestion.local_parser import LocalFileParser
from chat_context.ingestion.link_parser import LocalLinkParser
from chat_context.ingestion.mineru_parser import MineruParser
from chat_context.ingestion.parser import DocumentParserConfig, DocumentParserType, FileParser, LinkParser
from chat_context.ingestion.sources import FileSource, is_text_file_path
from chat_context.models import ContentPart, Message, MessageFile, MessageLink, create_message, now_ms
from chat_context.storage.keys import (
    file_uniq_key,
    link_title_key,
    link_uniq_key,
    token_calculated_at_key,
    token_map_key,
)
from chat_context.storage.store import ContentStore
from chat_context.token_accounting import (
    TOKENIZER_TYPES,
    TokenizerType,
    compute_preview_metadata,
    estimate_tokens,
)


@dataclass
class ContentRecord:
    content: str = ""
    storage_key: str = ""
    token_count_map: dict[str, int] = field(default_factory=dict)
    token_calculated_at: dict[str, int] = field(default_factory=dict)
    line_count: int | None = None
    byte_length: int | None = None
    error: str | None = None


@dataclass
class PreprocessedFile(ContentRecord):
    file: FileSource | None = None


@dataclass
class PreprocessedLink(ContentRecord):
    url: str = ""
    title: str = ""


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


_FileHandler = Callable[[FileSource, asyncio.Event | None], Awaitable[str]]


def _strip_scheme(url: str) -> str:
    return url.removeprefix("https://").removeprefix("http://")


class ContentIngestor:
    """Turns attached files and links into stored, token-accounted content.

    Content is stored once per content key. Later requests for the same key
    reuse the blob and only extend its token map for the tokenizer in use.
    Public methods never raise: failures come back in the record's ``error``.
    """

    def __init__(
        self,
        store: ContentStore,
        *,
        parser_config: DocumentParserConfig | None = None,
        local_parser: FileParser | None = None,
        cloud_parser: CloudParser | None = None,
        mineru_factory: Callable[[str], MineruParser] | None = MineruParser,
        local_link_parser: LinkParser | None = None,
        remote_link_parser: LinkParser | None = None,
        is_pro: bool = False,
    ):
        self._store = store
        self._parser_config = parser_config or DocumentParserConfig()
        self._local_parser = local_parser or LocalFileParser()
        self._cloud_parser = cloud_parser
        self._mineru_factory = mineru_factory
        self._local_link_parser = local_link_parser or LocalLinkParser()
        if remote_link_parser is None and cloud_parser is not None:
            remote_link_parser = RemoteLinkParser(cloud_parser)
        self._remote_link_parser = remote_link_parser
        self._is_pro = is_pro
        self._key_locks: dict[str, _KeyLock] = {}
        self._file_handlers: dict[str, _FileHandler] = {
            DocumentParserType.NONE: self._parse_not_configured,
            DocumentParserType.LOCAL: self._parse_local,
            DocumentParserType.CHATBOX_AI: self._parse_cloud,
            DocumentParserType.MINERU: self._parse_mineru,
        }

    async def preprocess_file(
        self,
        file: FileSource,
        tokenizer_type: TokenizerType = "default",
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> PreprocessedFile:
        try:
            key = file_uniq_key(file)

            async with self._key_lock(key):
                existing = self._store.get_blob(key)
                if existing:
                    logger.debug(f"File already preprocessed: {file.name}, using cached content")
                    record = self._account(key, existing, tokenizer_type)
                    return PreprocessedFile(file=file, **vars(record))

                parser_type = "local" if is_text_file_path(file.name) else self._parser_config.type
                logger.debug(f"Using document parser: {parser_type} for file: {file.name}")
                content = await self._parse_file(file, cancel_event)
                record = self._persist_file(key, content, tokenizer_type)
                return PreprocessedFile(file=file, **vars(record))
        except Exception as ex:
            error = ex.code.value if isinstance(ex, IngestionError) else (str(ex) or "Unknown error")
            if is_silent_error(error):
                logger.debug(f"Parsing cancelled: {file.name}")
            else:
                logger.error(f"Failed to preprocess file {file.name}: {ex}")
            return PreprocessedFile(file=file, error=error)

    async def preprocess_files(
        self,
        files: list[FileSource],
        tokenizer_type: TokenizerType = "default",
    ) -> list[PreprocessedFile]:
        results: list[PreprocessedFile] = []
        for file in files:
            results.append(await self.preprocess_file(file, tokenizer_type))
        return results

    async def preprocess_link(self, url: str, tokenizer_type: TokenizerType = "default") -> PreprocessedLink:
        try:
            key = link_uniq_key(url)

            async with self._key_lock(key):
                existing = self._store.get_blob(key)
                if existing:
                    title = (
                        self._store.get_item(link_title_key(key), None)
                        or find_title_tag(existing)
                        or _strip_scheme(url)
                    )
                    logger.debug(f"Link already preprocessed: {url}, using cached content")
                    record = self._account(key, existing, tokenizer_type)
                    return PreprocessedLink(url=url, title=title, **vars(record))

                use_remote = self._is_pro and self._remote_link_parser is not None
                parser = self._remote_link_parser if use_remote else self._local_link_parser
                logger.debug(f"Parsing link with {'remote' if use_remote else 'local'} parser: {url}")
                result = await parser.parse(url)
                title = result.title or _strip_scheme(url)
                if result.content:
                    self._store.set_item(link_title_key(key), title)
                record = self._persist_link(key, result.content, tokenizer_type)
                return PreprocessedLink(url=url, title=title, **vars(record))
        except Exception as ex:
            logger.error(f"Failed to preprocess link {url}: {ex}")
            error = ex.code.value if isinstance(ex, IngestionError) else (str(ex) or "Unknown error")
            return PreprocessedLink(url=url, title=_strip_scheme(url), error=error)

    @asynccontextmanager
    async def _key_lock(self, key: str) -> AsyncIterator[None]:
        entry = self._key_locks.get(key)
        if entry is None:
            entry = self._key_locks[key] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._key_locks[key]

    def _account(
        self,
        key: str,
        content: str,
        tokenizer_type: TokenizerType,
        existing: tuple[dict[str, int], dict[str, int]] | None = None,
    ) -> ContentRecord:
        if existing is None:
            existing = (
                self._store.get_item(token_map_key(key), {}),
                self._store.get_item(token_calculated_at_key(key), {}),
            )
        meta = compute_preview_metadata(content, tokenizer_type, *existing)
        # Merge so a slot written by another writer since our read is kept.
        counts = self._store.update_item(token_map_key(key), lambda cur: {**(cur or {}), **meta.token_count_map}, {})
        calculated_at = self._store.update_item(
            token_calculated_at_key(key),
            lambda cur: {**(cur or {}), **meta.token_calculated_at},
            {},
        )
        return ContentRecord(
            content=content,
            storage_key=key,
            token_count_map=counts,
            token_calculated_at=calculated_at,
            line_count=meta.line_count,
            byte_length=meta.byte_length,
        )

    def _persist_file(self, key: str, content: str, tokenizer_type: TokenizerType) -> ContentRecord:
        """First accounting of a parsed file.

        Every tokenizer's full slot is computed up front, so switching models
        later only needs a preview. Empty content is still accounted (one
        line, zero tokens) but no blob is written, so the next request parses
        again.
        """
        full_map: dict[str, int] = {}
        full_at: dict[str, int] = {}
        if content:
            self._store.set_blob(key, content)
            now = now_ms()
            full_map = {t: estimate_tokens(content, t) for t in TOKENIZER_TYPES}
            full_at = dict.fromkeys(full_map, now)
        return self._account(key, content, tokenizer_type, (full_map, full_at))

    def _persist_link(self, key: str, content: str, tokenizer_type: TokenizerType) -> ContentRecord:
        if not content:
            return ContentRecord(content="", storage_key=key)
        self._store.set_blob(key, content)
        return self._account(key, content, tokenizer_type)

    async def _parse_file(self, file: FileSource, cancel_event: asyncio.Event | None) -> str:
        if is_text_file_path(file.name):
            return await self._parse_local(file, cancel_event)
        handler = self._file_handlers.get(self._parser_config.type, self._parse_not_configured)
        return await handler(file, cancel_event)

    async def _parse_not_configured(self, file: FileSource, cancel_event: asyncio.Event | None) -> str:
        raise IngestionError(IngestionErrorCode.DOCUMENT_PARSER_NOT_CONFIGURED)

    async def _parse_local(self, file: FileSource, cancel_event: asyncio.Event | None) -> str:
        try:
            result = await self._local_parser.parse(file)
        except Exception as ex:
            raise IngestionError(IngestionErrorCode.LOCAL_PARSER_FAILED, str(ex)) from ex
        if not result.success:
            raise IngestionError(IngestionErrorCode.LOCAL_PARSER_FAILED)
        return result.content

    async def _parse_cloud(self, file: FileSource, cancel_event: asyncio.Event | None) -> str:
        if self._cloud_parser is None:
            raise IngestionError(IngestionErrorCode.CHATBOX_AI_PARSER_FAILED, "no license key")
        try:
            result = await self._cloud_parser.parse(file)
        except Exception as ex:
            raise IngestionError(IngestionErrorCode.CHATBOX_AI_PARSER_FAILED, str(ex)) from ex
        if not result.success:
            raise IngestionError(IngestionErrorCode.CHATBOX_AI_PARSER_FAILED)
        return result.content

    async def _parse_mineru(self, file: FileSource, cancel_event: asyncio.Event | None) -> str:
        api_token = self._parser_config.mineru_api_token
        if not api_token:
            raise IngestionError(IngestionErrorCode.MINERU_API_TOKEN_REQUIRED)
        if self._mineru_factory is None:
            raise IngestionError(IngestionErrorCode.THIRD_PARTY_PARSER_NOT_SUPPORTED)
        try:
            result = await self._mineru_factory(api_token).parse(file, cancel_event)
        except Exception as ex:
            raise IngestionError(IngestionErrorCode.THIRD_PARTY_PARSER_FAILED, str(ex)) from ex
        if result.cancelled:
            raise IngestionError(IngestionErrorCode.PARSING_CANCELLED)
        if not result.success or not result.content:
            raise IngestionError(IngestionErrorCode.THIRD_PARTY_PARSER_FAILED)
        return result.content


def construct_user_message(
    text: str,
    picture_keys: list[str] | None = None,
    files: list[PreprocessedFile] | None = None,
    links: list[PreprocessedLink] | None = None,
) -> Message:
    """Build a user message that references attachments by storage key only."""
    message = create_message("user", text)
    for key in picture_keys or []:
        message.content_parts.append(ContentPart(type="image", storage_key=key))

    for f in files or []:
        name = f.file.name if f.file is not None else ""
        message.files.append(
            MessageFile(
                id=f.storage_key or name,
                name=name,
                file_type=f.file.mime_type if f.file is not None else "",
                storage_key=f.storage_key,
                token_count_map=f.token_count_map or None,
                line_count=f.line_count,
                byte_length=f.byte_length,
            )
        )

    for link in links or []:
        message.links.append(
            MessageLink(
                id=link.storage_key or link.url,
                url=link.url,
                title=link.title,
                storage_key=link.storage_key,
                token_count_map=link.token_count_map or None,
                line_count=link.line_count,
                byte_length=link.byte_length,
            )
        )
    return message
