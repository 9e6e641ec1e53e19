from __future__ import annotations

from collections.abc import Awaitable, Callable

Handler = Callable[[str], Awaitable[None]]


class CommandRouter:
    def __init__(
        self,
        *,
        on_help: Callable[[], Awaitable[None]],
        on_attach: Handler,
        on_link: Handler,
        on_search: Handler,
        on_session: Handler,
        on_threads: Handler,
        on_unknown: Callable[[str], None],
    ) -> None:
        self._on_help = on_help
        self._routes: list[tuple[str, Handler]] = [
            ("/attach", on_attach),
            ("/link", on_link),
            ("/search", on_search),
            ("/session", on_session),
            ("/threads", on_threads),
        ]
        self._on_unknown = on_unknown

    async def try_handle(self, user_message: str) -> bool:
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        if trimmed == "/help":
            await self._on_help()
            return True

        command, _, argument = trimmed.partition(" ")
        for prefix, handler in self._routes:
            if command == prefix:
                await handler(argument.strip())
                return True

        self._on_unknown(trimmed)
        return True
