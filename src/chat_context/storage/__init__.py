from chat_context.storage.keys import StorageKey, file_uniq_key, link_uniq_key, session_key
from chat_context.storage.store import ContentStore, SqliteContentStore

__all__ = [
    "ContentStore",
    "SqliteContentStore",
    "StorageKey",
    "file_uniq_key",
    "link_uniq_key",
    "session_key",
]
