from __future__ import annotations

from uuid import uuid4

from loguru import logger

from chat_context.models import Session, SessionMeta, SessionThread, create_message, get_message_text, now_ms
from chat_context.storage.keys import StorageKey, session_key
from chat_context.storage.store import ContentStore


def sort_sessions(metas: list[SessionMeta]) -> list[SessionMeta]:
    """Starred sessions first; otherwise keep the stored most-recently-used order."""
    return [m for m in metas if m.starred] + [m for m in metas if not m.starred]


def migrate_session(data: Session | dict) -> Session:
    if isinstance(data, Session):
        return Session.from_dict(data.to_dict())
    return Session.from_dict(data)


class SessionStore:
    def __init__(self, store: ContentStore):
        self._store = store

    def list_session_metas(self) -> list[SessionMeta]:
        metas: list[SessionMeta] = []
        for raw in self._store.get_item(StorageKey.CHAT_SESSIONS_LIST, []) or []:
            try:
                metas.append(SessionMeta.from_dict(raw))
            except (KeyError, TypeError, ValueError, AttributeError) as ex:
                logger.warning(f"Skipping malformed session list entry {raw!r}: {ex}")
        return metas

    def get_session(self, session_id: str) -> Session | None:
        data = self._store.get_item(session_key(session_id), None)
        if data is None:
            return None
        return migrate_session(data)

    def save_session(self, session: Session) -> None:
        self._store.set_item(session_key(session.id), session.to_dict())

        def touch(current: list[dict] | None) -> list[dict]:
            rest = [m for m in current or [] if isinstance(m, dict) and m.get("id") != session.id]
            return [session.meta().to_dict(), *rest]

        self._store.update_item(StorageKey.CHAT_SESSIONS_LIST, touch, [])

    def create_session(self, name: str = "Untitled", *, system_prompt: str | None = None) -> Session:
        session = Session(id=str(uuid4()), name=name)
        if system_prompt:
            session.messages.append(create_message("system", system_prompt))
        self.save_session(session)
        logger.debug(f"Created session {session.id} ({name!r})")
        return session

    def delete_session(self, session_id: str) -> None:
        self._store.update_item(
            StorageKey.CHAT_SESSIONS_LIST,
            lambda current: [m for m in current or [] if isinstance(m, dict) and m.get("id") != session_id],
            [],
        )
        remove = getattr(self._store, "remove_item", None)
        if remove is not None:
            remove(session_key(session_id))

    def archive_current_thread(self, session_id: str, *, name: str | None = None) -> Session:
        """Move the live messages into a new archived thread, keeping the system prompt live."""
        session = self.get_session(session_id)
        if session is None:
            raise ValueError(f"Session does not exist: {session_id}")

        system_messages = [m for m in session.messages if m.role == "system"]
        if len(session.messages) > len(system_messages):
            session.threads.append(
                SessionThread(
                    id=str(uuid4()),
                    name=name or session.thread_name or session.name,
                    messages=session.messages,
                    created_at=now_ms(),
                )
            )
            session.messages = [create_message("system", get_message_text(m)) for m in system_messages]
            session.thread_name = ""
        self.save_session(session)
        return session
