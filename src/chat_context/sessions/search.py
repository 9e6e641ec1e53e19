from __future__ import annotations

import asyncio
import inspect
import re
from collections.abc import Awaitable, Callable
from dataclasses import replace

from loguru import logger

from chat_context.models import Message, Session, get_message_text, migrate_message
from chat_context.sessions.session_store import SessionStore, sort_sessions

SEARCH_MATCH_CAP = 50

OnResult = Callable[[list[Session]], Awaitable[None] | None]


def _search_session(pattern: re.Pattern[str], session: Session) -> list[Message]:
    matched: list[Message] = []
    for message in reversed(session.messages):
        if pattern.search(get_message_text(message)):
            matched.append(message)
    for thread in reversed(session.threads):
        for message in reversed(thread.messages):
            if pattern.search(get_message_text(message)):
                matched.append(message)
    return [migrate_message(m) for m in matched]


async def search_sessions(
    sessions: SessionStore,
    query: str,
    session_id: str | None = None,
    on_result: OnResult | None = None,
) -> None:
    """Stream the messages matching ``query`` one session batch at a time.

    Without ``session_id`` every session is scanned in list order and the
    scan stops once ``SEARCH_MATCH_CAP`` matches have been emitted; a
    session's own matches are never split.
    """
    pattern = re.compile(re.escape(query), re.IGNORECASE)
    matched_total = 0

    async def emit(batch: list[Session]) -> None:
        if not batch or on_result is None:
            return
        outcome = on_result(batch)
        if inspect.isawaitable(outcome):
            await outcome

    if session_id:
        try:
            session = sessions.get_session(session_id)
        except Exception as ex:
            logger.warning(f"Cannot search session {session_id}: {ex}")
            return
        if session is not None:
            matched = _search_session(pattern, session)
            await emit([replace(session, messages=matched)])
        return

    for meta in sort_sessions(sessions.list_session_metas()):
        try:
            session = sessions.get_session(meta.id)
        except Exception as ex:
            logger.warning(f"Skipping session {meta.id} in search: {ex}")
            continue
        if session is not None:
            matched = _search_session(pattern, session)
            if matched:
                matched_total += len(matched)
                await emit([replace(session, messages=matched)])
            if matched_total >= SEARCH_MATCH_CAP:
                logger.debug(f"Search stopped at {matched_total} matches")
                break
        await asyncio.sleep(0)
