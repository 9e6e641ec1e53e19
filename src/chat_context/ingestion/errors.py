from __future__ import annotations

from enum import StrEnum


class IngestionErrorCode(StrEnum):
    DOCUMENT_PARSER_NOT_CONFIGURED = "document_parser_not_configured"
    LOCAL_PARSER_FAILED = "local_parser_failed"
    CHATBOX_AI_PARSER_FAILED = "chatbox_ai_parser_failed"
    THIRD_PARTY_PARSER_NOT_SUPPORTED = "third_party_parser_not_supported_in_chat"
    MINERU_API_TOKEN_REQUIRED = "mineru_api_token_required"
    THIRD_PARTY_PARSER_FAILED = "third_party_parser_failed"
    PARSING_CANCELLED = "parsing_cancelled"


# Configuration problems the user fixes in settings.
CONFIGURATION_ERRORS = frozenset({
    IngestionErrorCode.DOCUMENT_PARSER_NOT_CONFIGURED,
    IngestionErrorCode.MINERU_API_TOKEN_REQUIRED,
    IngestionErrorCode.THIRD_PARTY_PARSER_NOT_SUPPORTED,
})


class IngestionError(Exception):
    def __init__(self, code: IngestionErrorCode, detail: str = ""):
        super().__init__(f"{code.value}: {detail}" if detail else code.value)
        self.code = code
        self.detail = detail


def is_silent_error(error: str | None) -> bool:
    """A cancelled parse is a user action, not a failure."""
    return error == IngestionErrorCode.PARSING_CANCELLED


def is_configuration_error(error: str | None) -> bool:
    return error in CONFIGURATION_ERRORS
