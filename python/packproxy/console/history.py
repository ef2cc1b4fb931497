"""Persistent command history."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

LOGGER = logging.getLogger("packproxy.console.history")

DEFAULT_HISTORY_PATH = Path("~/.packproxy/command_history.txt")
DEFAULT_HISTORY_SIZE = 100


class HistoryStore:
    """File-backed command history, oldest first, bounded to ``limit`` entries.

    Adjacent duplicates are dropped.  Every accepted entry is written to disk
    straight away; I/O failures are logged and the store keeps working in
    memory.
    """

    def __init__(self, path: Optional[str | Path], *, limit: int = DEFAULT_HISTORY_SIZE) -> None:
        self.limit = max(1, int(limit or 1))
        self.path = Path(path).expanduser() if path else None
        self.entries: List[str] = []
        if self.path:
            self._load()

    def _load(self) -> None:
        if not self.path:
            return
        try:
            data = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.error("Failed to load command history path=%s error=%s", self.path, exc)
            return
        lines = [line.strip() for line in data.splitlines() if line.strip()]
        self.entries = lines[-self.limit :]

    def append(self, line: str) -> bool:
        """Record ``line``. Returns False when it was empty or repeated the last entry."""
        text = line.strip()
        if not text:
            return False
        if self.entries and self.entries[-1] == text:
            return False
        self.entries.append(text)
        if len(self.entries) > self.limit:
            self.entries = self.entries[-self.limit :]
        self.save()
        return True

    def save(self) -> bool:
        if not self.path:
            return False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("".join(f"{entry}\n" for entry in self.entries), encoding="utf-8")
        except OSError as exc:
            LOGGER.error("Failed to save command history path=%s error=%s", self.path, exc)
            return False
        return True

    def snapshot(self) -> List[str]:
        return list(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
