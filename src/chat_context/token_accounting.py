from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, get_args

from chat_context.models import now_ms

TokenizerType = Literal["default", "deepseek"]
TOKENIZER_TYPES: tuple[TokenizerType, ...] = get_args(TokenizerType)

TOKEN_CACHE_KEYS: dict[str, str] = {
    "default": "default",
    "deepseek": "deepseek",
    "default_preview": "default_preview",
    "deepseek_preview": "deepseek_preview",
}

# Shared with the attachment preview renderer.
PREVIEW_LINES = 100


@dataclass(frozen=True)
class PreviewMetadata:
    line_count: int
    byte_length: int
    token_count_map: dict[str, int]
    token_calculated_at: dict[str, int]


def get_tokenizer_type(model_id: str | None) -> TokenizerType:
    if model_id and "deepseek" in model_id.lower():
        return "deepseek"
    return "default"


def _is_cjk(ch: str) -> bool:
    code = ord(ch)
    return (
        0x4E00 <= code <= 0x9FFF
        or 0x3400 <= code <= 0x4DBF
        or 0x3040 <= code <= 0x30FF
        or 0xAC00 <= code <= 0xD7AF
        or 0xF900 <= code <= 0xFAFF
    )


def estimate_tokens(content: str, tokenizer_type: TokenizerType = "default") -> int:
    """Deterministic token estimate for ``content`` under a tokenizer family.

    ``default`` follows the usual ~4 characters per token rule. ``deepseek``
    weights CJK characters at 0.6 tokens and everything else at 0.3.
    """
    if not content:
        return 0
    if tokenizer_type == "deepseek":
        cjk = sum(1 for ch in content if _is_cjk(ch))
        other = len(content) - cjk
        return math.ceil(cjk * 0.6 + other * 0.3)
    return math.ceil(len(content) / 4)


def compute_preview_metadata(
    content: str,
    tokenizer_type: TokenizerType,
    existing_map: dict[str, int] | None = None,
    existing_calculated_at: dict[str, int] | None = None,
) -> PreviewMetadata:
    """Extend a token map for ``tokenizer_type`` and refresh its preview slot.

    The full-content slot is only computed when missing, so a value and its
    timestamp already present in ``existing_map`` survive untouched. The
    ``<tokenizer>_preview`` slot over the first ``PREVIEW_LINES`` lines is
    recomputed on every call.
    """
    lines = content.split("\n")
    line_count = len(lines)
    byte_length = len(content.encode("utf-8"))
    now = now_ms()

    preview_content = "\n".join(lines[:PREVIEW_LINES])

    token_count_map = dict(existing_map or {})
    token_calculated_at = dict(existing_calculated_at or {})

    full_key = tokenizer_type
    preview_key = f"{tokenizer_type}_preview"

    if token_count_map.get(full_key) is None:
        token_count_map[full_key] = estimate_tokens(content, tokenizer_type)
        token_calculated_at[full_key] = now

    token_count_map[preview_key] = estimate_tokens(preview_content, tokenizer_type)
    token_calculated_at[preview_key] = now

    return PreviewMetadata(
        line_count=line_count,
        byte_length=byte_length,
        token_count_map=token_count_map,
        token_calculated_at=token_calculated_at,
    )
