from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from chat_context.bootstrap import AppRuntime
from chat_context.ingestion import (
    FileSource,
    PreprocessedFile,
    PreprocessedLink,
    construct_user_message,
    is_silent_error,
)
from chat_context.models import Session
from chat_context.prompt_builder import build_prompt, message_from_prompt
from chat_context.sessions import search_sessions
from chat_context.token_accounting import TokenizerType, get_tokenizer_type
from chat_context.turn_engine import TurnEngine


class ChatController:
    """Holds the active session and the attachments queued for the next message."""

    def __init__(self, runtime: AppRuntime, session: Session, *, on_text: Callable[[str], None] | None = None):
        self._runtime = runtime
        self._session = session
        self._on_text = on_text
        self._pending_files: list[PreprocessedFile] = []
        self._pending_links: list[PreprocessedLink] = []
        self.cancel_event = asyncio.Event()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def tokenizer_type(self) -> TokenizerType:
        return get_tokenizer_type(self._runtime.app.model)

    def switch_session(self, session: Session) -> None:
        self._session = session
        self._pending_files.clear()
        self._pending_links.clear()

    async def attach_file(self, path: str) -> PreprocessedFile | None:
        self.cancel_event.clear()
        file = FileSource.from_path(Path(path).expanduser())
        result = await self._runtime.ingestor.preprocess_file(file, self.tokenizer_type, cancel_event=self.cancel_event)
        if is_silent_error(result.error):
            return None
        if not result.error:
            self._pending_files.append(result)
        return result

    async def attach_link(self, url: str) -> PreprocessedLink:
        result = await self._runtime.ingestor.preprocess_link(url, self.tokenizer_type)
        if not result.error:
            self._pending_links.append(result)
        return result

    async def send(self, text: str) -> str:
        """Send ``text`` with the queued attachments and return the final reply text."""
        provider = self._runtime.provider
        if provider is None:
            raise RuntimeError("No model provider configured; set ANTHROPIC_API_KEY")

        app = self._runtime.app
        user_message = construct_user_message(text, files=self._pending_files, links=self._pending_links)
        self._pending_files = []
        self._pending_links = []
        self._session.messages.append(user_message)
        self._runtime.sessions.save_session(self._session)

        prompt = build_prompt(app.system_prompt, self._session.messages, self._runtime.store)
        engine = TurnEngine(
            provider=provider,
            model=app.model,
            max_tokens=app.max_tokens,
            temperature=app.temperature,
            tools=self._runtime.tools,
            max_tool_steps=app.max_tool_steps,
            max_tool_result_chars=app.max_tool_result_chars,
            on_text=self._on_text,
        )
        produced = (await engine.run(prompt))[len(prompt):]

        for entry in produced:
            self._session.messages.append(message_from_prompt(entry))
        self._runtime.sessions.save_session(self._session)
        logger.debug(f"Turn complete: {len(produced)} message(s) appended to {self._session.id}")

        final = produced[-1] if produced else {}
        return "".join(b.get("text", "") for b in final.get("content", []) if b.get("type") == "text")

    async def search(self, query: str, *, this_session_only: bool = False) -> list[Session]:
        batches: list[Session] = []
        session_id = self._session.id if this_session_only else None
        await search_sessions(self._runtime.sessions, query, session_id, batches.extend)
        return batches
