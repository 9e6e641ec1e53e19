import sys
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from loguru import logger

_LOG_DIR = ".chat_context"


def _is_usage_record(record: dict) -> bool:
    return record["extra"].get("usage") is True


def _is_app_record(record: dict) -> bool:
    return not _is_usage_record(record)


@runtime_checkable
class LogConsumer(Protocol):
    def register(self, level: str) -> None: ...
    def describe(self, level: str) -> str: ...


class ConsoleLogConsumer:
    def register(self, level: str) -> None:
        logger.add(
            sys.stderr,
            level=level,
            filter=_is_app_record,
            format="<level>{level:<8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        )

    def describe(self, level: str) -> str:
        return f"console (stderr, {level})"


class FileLogConsumer:
    def __init__(self, path: str = f"{_LOG_DIR}/chat_context.log", rotation: str = "10 MB", retention: int = 3):
        self._path = path
        self._rotation = rotation
        self._retention = retention

    def register(self, level: str) -> None:
        Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            self._path,
            level=level,
            filter=_is_app_record,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}",
            rotation=self._rotation,
            retention=self._retention,
            enqueue=True,
        )

    def describe(self, level: str) -> str:
        return f"file ({self._path}, {level})"


class UsageLogConsumer:
    """JSON lines of per-call token usage, including prompt cache reads and writes.

    Only records bound with ``usage=True`` reach this sink; the usage fields
    are in each line's ``record.extra``.
    """

    def __init__(self, path: str = f"{_LOG_DIR}/usage.jsonl", rotation: str = "10 MB"):
        self._path = path
        self._rotation = rotation

    def register(self, level: str) -> None:
        Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        logger.add(self._path, level="DEBUG", filter=_is_usage_record, serialize=True, rotation=self._rotation)

    def describe(self, level: str) -> str:
        return f"usage ({self._path})"


_CONSUMER_TYPES: dict[str, type] = {
    "console": ConsoleLogConsumer,
    "file": FileLogConsumer,
    "usage": UsageLogConsumer,
}

# Console stays at WARNING so log lines do not interleave with streamed replies.
_DEFAULT_CONSUMERS = [
    {"type": "console", "level": "WARNING"},
    {"type": "file"},
    {"type": "usage"},
]


def _build_consumer(config: dict[str, Any]) -> LogConsumer | None:
    sink_type = config.get("type", "")
    cls = _CONSUMER_TYPES.get(sink_type)
    if cls is None:
        logger.warning(f"Unknown log consumer type: {sink_type!r}")
        return None
    return cls(**{k: v for k, v in config.items() if k not in ("type", "level")})


def setup_logging(level: str = "INFO", consumers: list[dict[str, Any]] | None = None) -> list[str]:
    """Replace loguru's default sink with the configured consumers and describe each one."""
    logger.remove()

    descriptions: list[str] = []
    for config in consumers if consumers is not None else _DEFAULT_CONSUMERS:
        consumer = _build_consumer(config)
        if consumer is None:
            continue
        sink_level = config.get("level", level)
        consumer.register(sink_level)
        descriptions.append(consumer.describe(sink_level))
    return descriptions
