from collections.abc import Callable
from typing import Protocol, runtime_checkable

from chat_context.tool import Tool


@runtime_checkable
class LLMProvider(Protocol):
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
        """Run one model call on the full prompt.

        Returns (assistant_message, tool_use_blocks, stop_reason). Providers
        that support prompt caching place their breakpoints on every call.
        """
        ...

    def convert_tools(self, tools: list[Tool]) -> list[dict]:
        """Convert Tool protocol objects to provider-specific tool schema."""
        ...


def create_provider(provider_name: str, api_key: str, *, api_host: str | None = None) -> LLMProvider:
    """Factory: create an LLMProvider by name."""
    name = provider_name.strip().lower()
    if name in ("anthropic", "claude", "custom-claude"):
        from chat_context.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(api_key, base_url=api_host)
    raise ValueError(f"Unknown provider: {provider_name!r}. Supported: 'anthropic', 'custom-claude'")
