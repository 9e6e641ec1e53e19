from typing import Any

from chat_context.models import Session, get_message_text
from chat_context.sessions.search import search_sessions
from chat_context.sessions.session_store import SessionStore

_PREVIEW_CHARS = 300


class SessionSearchTool:
    def __init__(self, sessions: SessionStore):
        self._sessions = sessions

    @property
    def name(self) -> str:
        return "search_sessions"

    @property
    def description(self) -> str:
        return (
            "Search the user's previous chat sessions, including archived threads, "
            "for messages containing a phrase (case-insensitive, literal match)."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Text to look for"},
                "sessionId": {"type": "string", "description": "Limit the search to one session"},
            },
            "required": ["query"],
        }

    async def execute(self, tool_input: dict[str, Any]) -> str:
        query = str(tool_input.get("query", "")).strip()
        if not query:
            return "Error: query is required"

        lines: list[str] = []

        def collect(batch: list[Session]) -> None:
            for session in batch:
                for message in session.messages:
                    text = " ".join(get_message_text(message).split())
                    if len(text) > _PREVIEW_CHARS:
                        text = text[: _PREVIEW_CHARS - 3] + "..."
                    lines.append(f"[{session.name} | {message.role}] {text}")

        await search_sessions(self._sessions, query, tool_input.get("sessionId") or None, collect)
        if not lines:
            return f"No messages found for {query!r}"
        return f"{len(lines)} matching message(s):\n" + "\n".join(lines)
