from chat_context.sessions.search import SEARCH_MATCH_CAP, search_sessions
from chat_context.sessions.session_store import SessionStore, migrate_session, sort_sessions
from chat_context.sessions.threads import get_all_message_list, get_current_thread_history_hash

__all__ = [
    "SEARCH_MATCH_CAP",
    "SessionStore",
    "get_all_message_list",
    "get_current_thread_history_hash",
    "migrate_session",
    "search_sessions",
    "sort_sessions",
]
