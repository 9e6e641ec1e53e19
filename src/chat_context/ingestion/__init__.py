from chat_context.ingestion.errors import IngestionError, IngestionErrorCode, is_configuration_error, is_silent_error
from chat_context.ingestion.parser import DocumentParserConfig, DocumentParserType, ParseResult
from chat_context.ingestion.pipeline import (
    ContentIngestor,
    ContentRecord,
    PreprocessedFile,
    PreprocessedLink,
    construct_user_message,
)
from chat_context.ingestion.sources import FileSource, is_text_file_path

__all__ = [
    "ContentIngestor",
    "ContentRecord",
    "DocumentParserConfig",
    "DocumentParserType",
    "FileSource",
    "IngestionError",
    "IngestionErrorCode",
    "ParseResult",
    "PreprocessedFile",
    "PreprocessedLink",
    "construct_user_message",
    "is_configuration_error",
    "is_silent_error",
    "is_text_file_path",
]
