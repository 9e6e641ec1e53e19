from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from chat_context.app_config import AppConfig, RuntimeEnv
from chat_context.ingestion import ContentIngestor
from chat_context.ingestion.cloud_parser import CloudParser
from chat_context.ingestion.local_parser import LocalFileParser
from chat_context.ingestion.mineru_parser import MineruParser
from chat_context.logging_config import setup_logging
from chat_context.provider import LLMProvider, create_provider
from chat_context.sessions import SessionStore
from chat_context.storage import SqliteContentStore
from chat_context.tools.session_search_tool import SessionSearchTool


@dataclass
class AppRuntime:
    app: AppConfig
    store: SqliteContentStore
    sessions: SessionStore
    ingestor: ContentIngestor
    provider: LLMProvider | None
    tools: list
    log_descriptions: list[str]


def bootstrap_runtime(app: AppConfig, env: RuntimeEnv) -> AppRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers)

    db_path = Path(app.store_db_path)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    store = SqliteContentStore(str(db_path))
    sessions = SessionStore(store)

    cloud_parser: CloudParser | None = None
    if env.license_key:
        cloud_parser = CloudParser(env.license_key, api_origin=app.cloud_api_origin)

    parser_config = app.document_parser
    if not parser_config.mineru_api_token and env.mineru_api_token:
        parser_config = replace(parser_config, mineru_api_token=env.mineru_api_token)

    ingestor = ContentIngestor(
        store,
        parser_config=parser_config,
        local_parser=LocalFileParser(available=app.local_parser_available),
        cloud_parser=cloud_parser,
        mineru_factory=MineruParser if app.mineru_supported else None,
        is_pro=app.is_pro and cloud_parser is not None,
    )

    provider: LLMProvider | None = None
    if env.provider_api_key:
        provider = create_provider(app.provider_name, env.provider_api_key, api_host=app.api_host)

    return AppRuntime(
        app=app,
        store=store,
        sessions=sessions,
        ingestor=ingestor,
        provider=provider,
        tools=[SessionSearchTool(sessions)],
        log_descriptions=log_descriptions,
    )
