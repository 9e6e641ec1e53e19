import asyncio
import signal
import sys

from dotenv import load_dotenv
from loguru import logger

from chat_context.app_config import load_json_config, parse_app_config, resolve_runtime_env
from chat_context.bootstrap import AppRuntime, bootstrap_runtime
from chat_context.chat import ChatController
from chat_context.commands.router import CommandRouter
from chat_context.ingestion import is_configuration_error
from chat_context.models import get_message_text
from chat_context.sessions import get_current_thread_history_hash

_HELP = """\
Commands:
  /attach <path>          ingest a file and attach it to the next message
  /link <url>             ingest a web page and attach it to the next message
  /search <text>          search all sessions (/search --here <text> for this one)
  /session                show the active session
  /session list           list sessions, most recently used first
  /session new [name]     start a new session
  /session open <id>      switch to a session
  /session archive        archive the current thread and start a fresh one
  /threads                list the threads of this session
  exit                    quit"""


def _print_record_error(kind: str, name: str, error: str) -> None:
    hint = " (check DocumentParser in config.json)" if is_configuration_error(error) else ""
    print(f"  {kind} {name} failed: {error}{hint}")


class _Repl:
    def __init__(self, runtime: AppRuntime, controller: ChatController):
        self._runtime = runtime
        self._controller = controller
        self.router = CommandRouter(
            on_help=self._help,
            on_attach=self._attach,
            on_link=self._link,
            on_search=self._search,
            on_session=self._session,
            on_threads=self._threads,
            on_unknown=lambda cmd: print(f"  Unknown command: {cmd} (try /help)"),
        )

    async def _help(self) -> None:
        print(_HELP)

    async def _attach(self, argument: str) -> None:
        if not argument:
            print("  Usage: /attach <path>")
            return
        loop = asyncio.get_running_loop()
        try:
            # Ctrl-C cancels a long-running document extraction.
            loop.add_signal_handler(signal.SIGINT, self._controller.cancel_event.set)
            handler_installed = True
        except (NotImplementedError, RuntimeError):
            handler_installed = False
        try:
            result = await self._controller.attach_file(argument)
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)
        if result is None:
            print("  Parsing cancelled.")
        elif result.error:
            _print_record_error("File", argument, result.error)
        else:
            tokens = result.token_count_map.get(self._controller.tokenizer_type, 0)
            print(f"  Attached {argument}: {result.line_count or 0} lines, {result.byte_length or 0:,} bytes, ~{tokens:,} tokens")

    async def _link(self, argument: str) -> None:
        if not argument:
            print("  Usage: /link <url>")
            return
        result = await self._controller.attach_link(argument)
        if result.error:
            _print_record_error("Link", argument, result.error)
        else:
            tokens = result.token_count_map.get(self._controller.tokenizer_type, 0)
            print(f"  Attached {result.title}: {result.line_count or 0} lines, ~{tokens:,} tokens")

    async def _search(self, argument: str) -> None:
        here = argument.startswith("--here ")
        query = argument.removeprefix("--here ").strip()
        if not query:
            print("  Usage: /search [--here] <text>")
            return
        batches = await self._controller.search(query, this_session_only=here)
        total = 0
        for session in batches:
            print(f"  {session.name} [{session.id[:8]}]")
            for message in session.messages:
                total += 1
                preview = " ".join(get_message_text(message).split())[:120]
                print(f"    {message.role}: {preview}")
        print(f"  {total} match(es)")

    async def _session(self, argument: str) -> None:
        sessions = self._runtime.sessions
        command, _, rest = argument.partition(" ")
        if not command:
            s = self._controller.session
            print(f"  {s.name} [{s.id}] ({len(s.messages)} messages, {len(s.threads)} archived threads)")
        elif command == "list":
            for meta in sessions.list_session_metas():
                marker = "*" if meta.id == self._controller.session.id else " "
                star = " (starred)" if meta.starred else ""
                print(f"  {marker} {meta.name} [{meta.id}]{star}")
        elif command == "new":
            session = sessions.create_session(rest.strip() or "Untitled")
            self._controller.switch_session(session)
            print(f"  Started session {session.id}")
        elif command == "open":
            session = sessions.get_session(rest.strip())
            if session is None:
                print(f"  Session not found: {rest.strip()}")
                return
            self._controller.switch_session(session)
            print(f"  Switched to {session.name} [{session.id}]")
        elif command == "archive":
            session = sessions.archive_current_thread(self._controller.session.id)
            self._controller.switch_session(session)
            print(f"  Archived thread; {len(session.threads)} thread(s) in history")
        else:
            print(f"  Unknown /session command: {command}")

    async def _threads(self, argument: str) -> None:
        briefs = get_current_thread_history_hash(self._controller.session)
        if not briefs:
            print("  No archived threads.")
            return
        for brief in briefs.values():
            created = brief.created_at_label or "current"
            print(f"  {brief.name or '(unnamed)'}: {brief.message_count} messages ({created})")


async def main() -> None:
    load_dotenv()

    app = parse_app_config(load_json_config())
    env = resolve_runtime_env()
    runtime = bootstrap_runtime(app, env)

    if runtime.provider is None:
        logger.warning(f"{env.provider_env_var} is not set; chatting is disabled, commands still work.")

    metas = runtime.sessions.list_session_metas()
    session = runtime.sessions.get_session(metas[0].id) if metas else None
    if session is None:
        session = runtime.sessions.create_session()

    controller = ChatController(runtime, session, on_text=lambda text: print(text, end="", flush=True))
    repl = _Repl(runtime, controller)

    print("chat-context (type 'exit' to quit, '/help' for commands)")
    print(f"Model: {app.model} | Document parser: {app.document_parser.type}")
    print(f"Session: {session.name} [{session.id}]")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    try:
        while True:
            try:
                user_input = input("you> ")
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()
            if trimmed in ("exit", "quit"):
                break
            if not trimmed:
                continue

            try:
                if await repl.router.try_handle(trimmed):
                    continue
                print()
                await controller.send(trimmed)
                print("\n")
            except Exception as ex:
                logger.error(f"Unhandled error: {ex}")
                print(f"  Error: {ex}", file=sys.stderr)
    finally:
        runtime.store.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
