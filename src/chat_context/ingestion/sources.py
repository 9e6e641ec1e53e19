from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path

_TEXT_EXTENSIONS = frozenset({
    ".txt", ".md", ".markdown", ".rst", ".log", ".csv", ".tsv", ".json", ".jsonl",
    ".yaml", ".yml", ".toml", ".ini", ".cfg", ".conf", ".env", ".xml", ".svg",
    ".py", ".pyi", ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".java", ".kt",
    ".go", ".rs", ".c", ".h", ".cpp", ".hpp", ".cc", ".cs", ".rb", ".php", ".swift",
    ".scala", ".sh", ".bash", ".zsh", ".ps1", ".bat", ".sql", ".r", ".lua", ".pl",
    ".css", ".scss", ".less", ".vue", ".svelte", ".tex", ".properties", ".gradle",
})


def is_text_file_path(name: str) -> bool:
    return Path(name).suffix.lower() in _TEXT_EXTENSIONS


@dataclass(frozen=True)
class FileSource:
    name: str
    data: bytes
    mime_type: str = ""

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @classmethod
    def from_path(cls, path: str | Path) -> FileSource:
        p = Path(path)
        mime_type, _ = mimetypes.guess_type(p.name)
        return cls(name=p.name, data=p.read_bytes(), mime_type=mime_type or "")
