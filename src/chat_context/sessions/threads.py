from __future__ import annotations

from datetime import datetime

from chat_context.models import Message, Session, SessionThreadBrief


def _label(created_at_ms: int) -> str:
    return datetime.fromtimestamp(created_at_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def get_current_thread_history_hash(session: Session) -> dict[str, SessionThreadBrief]:
    """Index the archived threads and the live thread by their first message id."""
    briefs: dict[str, SessionThreadBrief] = {}
    if not session.threads:
        return briefs

    for thread in session.threads:
        if not thread.messages:
            continue
        first_id = thread.messages[0].id
        briefs[first_id] = SessionThreadBrief(
            id=thread.id,
            name=thread.name,
            created_at=thread.created_at,
            created_at_label=_label(thread.created_at),
            first_message_id=first_id,
            message_count=len(thread.messages),
        )

    if session.messages:
        first_id = session.messages[0].id
        briefs[first_id] = SessionThreadBrief(
            id=session.id,
            name=session.thread_name,
            first_message_id=first_id,
            message_count=len(session.messages),
        )
    return briefs


def get_all_message_list(session: Session) -> list[Message]:
    messages: list[Message] = []
    for thread in session.threads:
        messages.extend(thread.messages)
    messages.extend(session.messages)
    return messages
