from __future__ import annotations

import io

from loguru import logger

from chat_context.ingestion.html_text import html_to_text
from chat_context.ingestion.parser import ParseResult
from chat_context.ingestion.sources import FileSource, is_text_file_path

_HTML_EXTENSIONS = (".html", ".htm", ".xhtml")


class LocalFileParser:
    """In-process parser for text, HTML and .docx files.

    ``available`` is false on platforms without a local parsing runtime; the
    parser then reports every file as unsupported.
    """

    def __init__(self, *, available: bool = True):
        self._available = available

    @property
    def available(self) -> bool:
        return self._available

    async def parse(self, file: FileSource) -> ParseResult:
        if not self._available:
            return ParseResult(success=False)

        extension = file.extension
        if extension in _HTML_EXTENSIONS:
            return ParseResult(success=True, content=html_to_text(_decode(file.data)))
        if is_text_file_path(file.name) or file.mime_type.startswith("text/"):
            return ParseResult(success=True, content=_decode(file.data))
        if extension == ".docx":
            return ParseResult(success=True, content=_extract_docx_text(file.data))

        logger.debug(f"Local parser does not support {file.name!r}")
        return ParseResult(success=False)


def _decode(data: bytes) -> str:
    text = data.decode("utf-8", errors="replace")
    return text.removeprefix("\ufeff").replace("\r\n", "\n")


def _extract_docx_text(data: bytes) -> str:
    from docx import Document

    doc = Document(io.BytesIO(data))
    lines = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            lines.append("\t".join(cell.text for cell in row.cells))
    return "\n".join(lines)
