"""players command."""

from __future__ import annotations

from typing import List

from .base import Command
from ..context import ConsoleContext
from ..output import emit_result


class PlayersCommand(Command):
    def __init__(self) -> None:
        super().__init__("players", "List all connected players")

    def run(self, ctx: ConsoleContext, argv: List[str]) -> int:
        names = ctx.player_names()
        if not names:
            emit_result("No players online")
            return 0
        emit_result(f"Players online ({len(names)})")
        for name in names:
            emit_result(f"- {name}")
        return 0
