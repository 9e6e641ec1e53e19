from __future__ import annotations

from collections.abc import Callable
from typing import Any

from loguru import logger

from chat_context.provider import LLMProvider
from chat_context.tool import Tool


class TurnEngine:
    """Drives the tool-use loop for one user turn.

    Every step resends the whole prompt with the new tool call and tool
    result appended. The provider plans cache breakpoints on each call, so
    the engine carries no caching state between steps.
    """

    def __init__(
        self,
        *,
        provider: LLMProvider,
        model: str,
        max_tokens: int,
        temperature: float,
        tools: list[Tool],
        max_tool_steps: int = 20,
        max_tool_result_chars: int = 40_000,
        on_text: Callable[[str], None] | None = None,
        on_message: Callable[[dict], None] | None = None,
    ) -> None:
        self._provider = provider
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._tool_map = {t.name: t for t in tools}
        self._converted_tools = provider.convert_tools(tools) if tools else []
        self._max_tool_steps = max_tool_steps
        self._max_tool_result_chars = max_tool_result_chars
        self._on_text = on_text
        self._on_message = on_message

    async def run(self, prompt: list[dict]) -> list[dict]:
        """Return the prompt extended with every message produced during the turn."""
        working = list(prompt)
        steps = 0

        while True:
            message, tool_use_blocks, stop_reason = await self._provider.stream_chat(
                self._model,
                self._max_tokens,
                self._temperature,
                working,
                self._converted_tools,
                on_text=self._on_text,
            )
            self._append(working, message)

            if not tool_use_blocks:
                if stop_reason == "max_tokens":
                    logger.warning(f"Response stopped at max_tokens ({self._max_tokens})")
                return working

            steps += 1
            tool_results = await self.execute_tools(tool_use_blocks)
            self._append(working, {"role": "tool", "content": tool_results})

            if steps >= self._max_tool_steps:
                logger.warning(f"Stopped after {steps} tool steps")
                return working

    async def execute_tools(self, tool_use_blocks: list[dict]) -> list[dict]:
        results: list[dict] = []
        for block in tool_use_blocks:
            results.append(await self._run_one(block))
        return results

    async def _run_one(self, block: dict) -> dict:
        tool_name = block["name"]
        tool_use_id = block["id"]
        tool = self._tool_map.get(tool_name)

        if tool is None:
            return _tool_result(tool_use_id, f'Error: unknown tool "{tool_name}"', is_error=True)

        tool_input: dict[str, Any] = block.get("input") or {}
        try:
            result = await tool.execute(tool_input)
        except Exception as ex:
            logger.warning(f"Tool {tool_name} failed: {ex}")
            return _tool_result(tool_use_id, f'Error executing tool "{tool_name}": {ex}', is_error=True)
        return _tool_result(tool_use_id, self._truncate(result, tool_name))

    def _append(self, working: list[dict], message: dict) -> None:
        working.append(message)
        if self._on_message is not None:
            self._on_message(message)

    def _truncate(self, result: str, tool_name: str) -> str:
        if self._max_tool_result_chars <= 0 or len(result) <= self._max_tool_result_chars:
            return result
        logger.warning(f"{tool_name} output truncated from {len(result):,} to {self._max_tool_result_chars:,} chars")
        return (
            result[: self._max_tool_result_chars]
            + f"\n\n[OUTPUT TRUNCATED: Showing {self._max_tool_result_chars:,} of {len(result):,} characters]"
        )


def _tool_result(tool_use_id: str, content: str, *, is_error: bool = False) -> dict:
    block: dict = {"type": "tool_result", "tool_use_id": tool_use_id, "content": content}
    if is_error:
        block["is_error"] = True
    return block
