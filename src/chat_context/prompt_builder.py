from __future__ import annotations

import re

from loguru import logger

from chat_context.models import ContentPart, Message, MessageFile, MessageLink, create_message
from chat_context.storage.store import ContentStore

_DATA_URL_RE = re.compile(r"^data:(?P<media_type>image/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


def _file_block(index: int, file: MessageFile, content: str) -> dict:
    return {
        "type": "text",
        "text": (
            "<ATTACHMENT_FILE>\n"
            f"<FILE_INDEX>{index}</FILE_INDEX>\n"
            f"<FILE_NAME>{file.name}</FILE_NAME>\n"
            f"<FILE_CONTENT>\n{content}\n</FILE_CONTENT>\n"
            "</ATTACHMENT_FILE>"
        ),
    }


def _link_block(index: int, link: MessageLink, content: str) -> dict:
    return {
        "type": "text",
        "text": (
            "<ATTACHMENT_LINK>\n"
            f"<LINK_INDEX>{index}</LINK_INDEX>\n"
            f"<LINK_URL>{link.url}</LINK_URL>\n"
            f"<LINK_TITLE>{link.title}</LINK_TITLE>\n"
            f"<LINK_CONTENT>\n{content}\n</LINK_CONTENT>\n"
            "</ATTACHMENT_LINK>"
        ),
    }


def _image_block(store: ContentStore, storage_key: str) -> dict | None:
    blob = store.get_blob(storage_key)
    match = _DATA_URL_RE.match(blob or "")
    if match is None:
        logger.debug(f"Image {storage_key} is not stored as a data URL, skipping")
        return None
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": match["media_type"], "data": match["data"]},
    }


def _message_blocks(message: Message, store: ContentStore) -> list[dict]:
    blocks: list[dict] = []
    for part in message.content_parts:
        if part.type == "text" and part.text:
            blocks.append({"type": "text", "text": part.text})
        elif part.type == "image" and part.storage_key:
            image = _image_block(store, part.storage_key)
            if image is not None:
                blocks.append(image)
        elif part.type == "tool_use":
            blocks.append({"type": "tool_use", "id": part.tool_use_id, "name": part.name, "input": part.input or {}})
        elif part.type == "tool_result":
            block = {"type": "tool_result", "tool_use_id": part.tool_use_id, "content": part.text}
            if part.is_error:
                block["is_error"] = True
            blocks.append(block)

    for index, file in enumerate(message.files, start=1):
        content = store.get_blob(file.storage_key) if file.storage_key else None
        if content is None:
            logger.warning(f"Attachment {file.name!r} has no stored content ({file.storage_key or 'no key'})")
            continue
        blocks.append(_file_block(index, file, content))

    for index, link in enumerate(message.links, start=1):
        content = store.get_blob(link.storage_key) if link.storage_key else None
        if content is None:
            logger.warning(f"Link {link.url} has no stored content ({link.storage_key or 'no key'})")
            continue
        blocks.append(_link_block(index, link, content))

    return blocks


def build_prompt(system_prompt: str | None, messages: list[Message], store: ContentStore) -> list[dict]:
    """Expand stored session messages into a provider-neutral prompt.

    Attachments are referenced by storage key on the message and are resolved
    here, so the content lives in the store exactly once.
    """
    prompt: list[dict] = []
    if system_prompt and not any(m.role == "system" for m in messages):
        prompt.append({"role": "system", "content": system_prompt})

    for message in messages:
        if message.role == "system":
            text = "\n".join(p.text for p in message.content_parts if p.type == "text")
            prompt.append({"role": "system", "content": text})
            continue
        blocks = _message_blocks(message, store)
        if not blocks:
            continue
        prompt.append({"role": message.role, "content": blocks})
    return prompt


def message_from_prompt(entry: dict) -> Message:
    """Convert a model-produced prompt entry back into a storable message."""
    message = create_message(entry.get("role", "assistant"))
    content = entry.get("content", "")
    if isinstance(content, str):
        content = [{"type": "text", "text": content}]
    for block in content:
        block_type = block.get("type")
        if block_type == "text":
            message.content_parts.append(ContentPart(type="text", text=block.get("text", "")))
        elif block_type == "tool_use":
            message.content_parts.append(
                ContentPart(type="tool_use", tool_use_id=block.get("id"), name=block.get("name"), input=block.get("input"))
            )
        elif block_type == "tool_result":
            message.content_parts.append(
                ContentPart(
                    type="tool_result",
                    tool_use_id=block.get("tool_use_id"),
                    text=str(block.get("content", "")),
                    is_error=bool(block.get("is_error", False)),
                )
            )
    return message
