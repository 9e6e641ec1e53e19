from __future__ import annotations

from collections.abc import Callable

import anthropic
from loguru import logger
from tenacity import retry

from chat_context.cache_breakpoints import count_cache_markers, has_cache_marker, plan_cache_breakpoints
from chat_context.providers.common import default_retry_kwargs
from chat_context.tool import Tool

_TRANSIENT_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
)


def _cache_control(message: dict) -> dict:
    return message["provider_options"]["anthropic"]["cache_control"]


def _as_blocks(content: str | list[dict]) -> list[dict]:
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    return [dict(b) for b in content]


def to_anthropic_payload(prompt: list[dict]) -> tuple[list[dict], list[dict]]:
    """Split a planned prompt into Anthropic ``system`` blocks and ``messages``.

    A cache marker on a message becomes ``cache_control`` on its last content
    block. ``tool`` messages are sent as user turns carrying tool results.
    """
    system_blocks: list[dict] = []
    messages: list[dict] = []

    for message in prompt:
        marked = has_cache_marker(message)
        role = message.get("role")
        if role == "system":
            block = {"type": "text", "text": str(message.get("content", ""))}
            if marked:
                block["cache_control"] = _cache_control(message)
            system_blocks.append(block)
            continue

        content = message.get("content", "")
        if marked:
            content = _as_blocks(content)
            if content:
                content[-1]["cache_control"] = _cache_control(message)
        messages.append({"role": "user" if role == "tool" else role, "content": content})

    return system_blocks, messages


class AnthropicProvider:
    def __init__(self, api_key: str, *, base_url: str | None = None, client: anthropic.AsyncAnthropic | None = None):
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key, base_url=base_url or None)

    def convert_tools(self, tools: list[Tool]) -> list[dict]:
        return [
            {
                "name": t.name,
                "description": t.description,
                "input_schema": t.input_schema,
            }
            for t in tools
        ]

    @retry(**default_retry_kwargs(_TRANSIENT_ERRORS))
    async def stream_chat(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        prompt: list[dict],
        tools: list[dict],
        *,
        on_text: Callable[[str], None] | None = None,
    ) -> tuple[dict, list[dict], str]:
        """Stream one model call for ``prompt``, placing cache breakpoints first.

        Returns (assistant message, tool_use blocks, stop_reason).
        """
        planned = plan_cache_breakpoints(prompt)
        system_blocks, messages = to_anthropic_payload(planned)

        logger.debug(
            f"API request: model={model}, max_tokens={max_tokens}, "
            f"messages={len(messages)}, tools={len(tools)}, cache_breakpoints={count_cache_markers(planned)}"
        )
        request: dict = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        }
        if system_blocks:
            request["system"] = system_blocks
        if tools:
            request["tools"] = tools

        async with self._client.messages.stream(**request) as stream:
            async for event in stream:
                if event.type == "content_block_delta" and event.delta.type == "text_delta" and on_text:
                    on_text(event.delta.text)
            response = await stream.get_final_message()

        usage = response.usage
        cache_read = getattr(usage, "cache_read_input_tokens", 0) or 0
        cache_write = getattr(usage, "cache_creation_input_tokens", 0) or 0
        logger.debug(
            f"API response: stop_reason={response.stop_reason}, "
            f"input_tokens={usage.input_tokens}, output_tokens={usage.output_tokens}, "
            f"cache_read={cache_read}, cache_write={cache_write}"
        )
        logger.bind(
            usage=True,
            model=model,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cache_read_input_tokens=cache_read,
            cache_creation_input_tokens=cache_write,
        ).info("model call")

        assistant_content: list[dict] = []
        tool_use_blocks: list[dict] = []
        for block in response.content:
            if block.type == "text":
                assistant_content.append({"type": "text", "text": block.text})
            elif block.type == "tool_use":
                tool_block = {
                    "type": "tool_use",
                    "id": block.id,
                    "name": block.name,
                    "input": block.input,
                }
                assistant_content.append(tool_block)
                tool_use_blocks.append(tool_block)

        message = {"role": "assistant", "content": assistant_content}
        return message, tool_use_blocks, response.stop_reason
