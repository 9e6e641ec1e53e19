from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from chat_context.ingestion.cloud_parser import DEFAULT_API_ORIGIN
from chat_context.ingestion.parser import DocumentParserConfig, DocumentParserType

_DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant. Use attached files and links as context when they are relevant."


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str
    license_key: str | None
    mineru_api_token: str | None


@dataclass
class AppConfig:
    provider_name: str
    model: str
    api_host: str | None
    max_tokens: int
    temperature: float
    max_tool_steps: int
    max_tool_result_chars: int
    system_prompt: str
    store_db_path: str
    document_parser: DocumentParserConfig
    local_parser_available: bool
    mineru_supported: bool
    cloud_api_origin: str
    is_pro: bool
    log_level: str
    log_consumers: list | None


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def _parse_document_parser(raw: object) -> DocumentParserConfig:
    if isinstance(raw, str):
        return DocumentParserConfig(type=raw.strip().lower())
    if not isinstance(raw, dict):
        return DocumentParserConfig(type=DocumentParserType.LOCAL)
    mineru = raw.get("Mineru") or {}
    token = str(mineru.get("ApiToken", "")).strip() or None
    return DocumentParserConfig(
        type=str(raw.get("Type", DocumentParserType.LOCAL)).strip().lower(),
        mineru_api_token=token,
    )


def parse_app_config(config: dict) -> AppConfig:
    return AppConfig(
        provider_name=config.get("Provider", "anthropic").strip().lower(),
        model=config.get("Model", "claude-sonnet-4-5-20250929"),
        api_host=str(config.get("ApiHost", "")).strip() or None,
        max_tokens=int(config.get("MaxTokens", 8192)),
        temperature=float(config.get("Temperature", 1.0)),
        max_tool_steps=int(config.get("MaxToolSteps", 20)),
        max_tool_result_chars=int(config.get("MaxToolResultChars", 40_000)),
        system_prompt=str(config.get("SystemPrompt") or _DEFAULT_SYSTEM_PROMPT),
        store_db_path=str(config.get("StoreDbPath", ".chat_context/store.db")),
        document_parser=_parse_document_parser(config.get("DocumentParser")),
        local_parser_available=_to_bool(config.get("LocalParserAvailable", True), default=True),
        mineru_supported=_to_bool(config.get("MineruSupported", True), default=True),
        cloud_api_origin=str(config.get("CloudApiOrigin") or DEFAULT_API_ORIGIN),
        is_pro=_to_bool(config.get("IsPro", False), default=False),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env() -> RuntimeEnv:
    return RuntimeEnv(
        provider_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
        provider_env_var="ANTHROPIC_API_KEY",
        license_key=os.environ.get("CHATBOX_LICENSE_KEY") or None,
        mineru_api_token=os.environ.get("MINERU_API_TOKEN") or None,
    )
