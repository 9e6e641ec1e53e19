from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING
from urllib.parse import urlsplit, urlunsplit

if TYPE_CHECKING:
    from chat_context.ingestion.sources import FileSource


class StorageKey:
    CHAT_SESSIONS_LIST = "chat-sessions-list"


_DEFAULT_PORTS = {"http": 80, "https": 443}


def session_key(session_id: str) -> str:
    return f"session:{session_id}"


def token_map_key(storage_key: str) -> str:
    return f"{storage_key}_tokenMap"


def token_calculated_at_key(storage_key: str) -> str:
    return f"{storage_key}_tokenCalculatedAt"


def link_title_key(storage_key: str) -> str:
    return f"{storage_key}_title"


def file_uniq_key(file: FileSource) -> str:
    digest = hashlib.sha256()
    digest.update(file.name.encode("utf-8"))
    digest.update(b"\0")
    digest.update(file.mime_type.encode("utf-8"))
    digest.update(b"\0")
    digest.update(str(file.size).encode("ascii"))
    digest.update(b"\0")
    digest.update(hashlib.sha256(file.data).digest())
    return f"file:{digest.hexdigest()}"


def normalize_url(url: str) -> str:
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    netloc = host
    if parts.port is not None and parts.port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{parts.port}"
    if parts.username:
        userinfo = parts.username + (f":{parts.password}" if parts.password else "")
        netloc = f"{userinfo}@{netloc}"
    path = parts.path.rstrip("/")
    return urlunsplit((scheme, netloc, path, parts.query, ""))


def link_uniq_key(url: str) -> str:
    return f"link:{hashlib.sha256(normalize_url(url).encode('utf-8')).hexdigest()}"
