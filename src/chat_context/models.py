from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

ROLES = ("system", "user", "assistant", "tool")


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class ContentPart:
    type: str
    text: str = ""
    storage_key: str | None = None
    tool_use_id: str | None = None
    name: str | None = None
    input: dict | None = None
    is_error: bool = False

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"type": self.type}
        if self.type in ("text", "tool_result"):
            data["text"] = self.text
        if self.storage_key is not None:
            data["storage_key"] = self.storage_key
        if self.tool_use_id is not None:
            data["tool_use_id"] = self.tool_use_id
        if self.name is not None:
            data["name"] = self.name
        if self.input is not None:
            data["input"] = self.input
        if self.is_error:
            data["is_error"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict) -> ContentPart:
        return cls(
            type=str(data.get("type", "text")),
            text=str(data.get("text", "")),
            storage_key=data.get("storage_key"),
            tool_use_id=data.get("tool_use_id"),
            name=data.get("name"),
            input=data.get("input"),
            is_error=bool(data.get("is_error", False)),
        )


# Stored attachment keys, in the client's camelCase record format.
_ATTACHMENT_KEYS = {
    "file_type": "fileType",
    "storage_key": "storageKey",
    "token_count_map": "tokenCountMap",
    "line_count": "lineCount",
    "byte_length": "byteLength",
}


def _attachment_to_dict(attachment: MessageFile | MessageLink) -> dict:
    return {_ATTACHMENT_KEYS.get(k, k): v for k, v in vars(attachment).items()}


def _attachment_fields(data: dict, names: tuple[str, ...]) -> dict:
    """Pick ``names`` out of a stored attachment, accepting camelCase or snake_case keys."""
    fields = {}
    for name in names:
        camel = _ATTACHMENT_KEYS.get(name, name)
        if camel in data:
            fields[name] = data[camel]
        elif name in data:
            fields[name] = data[name]
    return fields


@dataclass
class MessageFile:
    id: str
    name: str
    storage_key: str
    file_type: str = ""
    token_count_map: dict[str, int] | None = None
    line_count: int | None = None
    byte_length: int | None = None

    def to_dict(self) -> dict:
        return _attachment_to_dict(self)

    @classmethod
    def from_dict(cls, data: dict) -> MessageFile:
        fields = _attachment_fields(
            data, ("id", "name", "storage_key", "file_type", "token_count_map", "line_count", "byte_length")
        )
        fields.setdefault("name", "")
        fields.setdefault("storage_key", "")
        fields["id"] = str(fields.get("id") or fields["storage_key"] or uuid4())
        return cls(**fields)


@dataclass
class MessageLink:
    id: str
    url: str
    title: str
    storage_key: str
    token_count_map: dict[str, int] | None = None
    line_count: int | None = None
    byte_length: int | None = None

    def to_dict(self) -> dict:
        return _attachment_to_dict(self)

    @classmethod
    def from_dict(cls, data: dict) -> MessageLink:
        fields = _attachment_fields(
            data, ("id", "url", "title", "storage_key", "token_count_map", "line_count", "byte_length")
        )
        fields.setdefault("url", "")
        fields.setdefault("title", "")
        fields.setdefault("storage_key", "")
        fields["id"] = str(fields.get("id") or fields["storage_key"] or fields["url"] or uuid4())
        return cls(**fields)


@dataclass
class Message:
    id: str
    role: str
    content_parts: list[ContentPart] = field(default_factory=list)
    files: list[MessageFile] = field(default_factory=list)
    links: list[MessageLink] = field(default_factory=list)
    timestamp: int | None = None
    provider_options: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "contentParts": [p.to_dict() for p in self.content_parts],
            "files": [f.to_dict() for f in self.files],
            "links": [link.to_dict() for link in self.links],
            "timestamp": self.timestamp,
            "providerOptions": self.provider_options,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Message:
        """Build a message from a stored record, upgrading legacy shapes.

        Older records keep the text in a plain ``content`` string and may lack
        an id or a timestamp.
        """
        raw_parts = data.get("contentParts")
        if raw_parts is None:
            raw_parts = data.get("content_parts")
        if raw_parts is None:
            legacy = data.get("content", "")
            if isinstance(legacy, list):
                raw_parts = [b for b in legacy if isinstance(b, dict)]
            else:
                raw_parts = [{"type": "text", "text": str(legacy)}] if legacy else []

        role = str(data.get("role", "user"))
        if role not in ROLES:
            role = "user"

        return cls(
            id=str(data.get("id") or uuid4()),
            role=role,
            content_parts=[ContentPart.from_dict(p) for p in raw_parts],
            files=[MessageFile.from_dict(f) for f in data.get("files") or []],
            links=[MessageLink.from_dict(link) for link in data.get("links") or []],
            timestamp=data.get("timestamp"),
            provider_options=dict(data.get("providerOptions") or data.get("provider_options") or {}),
        )


def create_message(role: str, text: str = "") -> Message:
    parts = [ContentPart(type="text", text=text)] if text else []
    return Message(id=str(uuid4()), role=role, content_parts=parts, timestamp=now_ms())


def get_message_text(message: Message) -> str:
    return "\n".join(p.text for p in message.content_parts if p.type == "text" and p.text)


def migrate_message(message: Message | dict) -> Message:
    if isinstance(message, Message):
        return Message.from_dict(message.to_dict())
    return Message.from_dict(message)


@dataclass
class SessionThread:
    id: str
    name: str
    messages: list[Message] = field(default_factory=list)
    created_at: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "messages": [m.to_dict() for m in self.messages],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> SessionThread:
        return cls(
            id=str(data.get("id") or uuid4()),
            name=str(data.get("name", "")),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
            created_at=int(data.get("createdAt") or data.get("created_at") or 0),
        )


@dataclass
class SessionMeta:
    id: str
    name: str
    starred: bool = False
    type: str = "chat"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "starred": self.starred, "type": self.type}

    @classmethod
    def from_dict(cls, data: dict) -> SessionMeta:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            starred=bool(data.get("starred", False)),
            type=str(data.get("type", "chat")),
        )


@dataclass
class Session:
    id: str
    name: str
    type: str = "chat"
    messages: list[Message] = field(default_factory=list)
    threads: list[SessionThread] = field(default_factory=list)
    thread_name: str = ""
    starred: bool = False
    settings: dict = field(default_factory=dict)

    def meta(self) -> SessionMeta:
        return SessionMeta(id=self.id, name=self.name, starred=self.starred, type=self.type)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "messages": [m.to_dict() for m in self.messages],
            "threads": [t.to_dict() for t in self.threads],
            "threadName": self.thread_name,
            "starred": self.starred,
            "settings": self.settings,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Session:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "Untitled")),
            type=str(data.get("type", "chat")),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
            threads=[SessionThread.from_dict(t) for t in data.get("threads") or []],
            thread_name=str(data.get("threadName") or data.get("thread_name") or ""),
            starred=bool(data.get("starred", False)),
            settings=dict(data.get("settings") or {}),
        )


@dataclass(frozen=True)
class SessionThreadBrief:
    id: str
    name: str
    first_message_id: str
    message_count: int
    created_at: int | None = None
    created_at_label: str | None = None
