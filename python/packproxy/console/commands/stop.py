"""stop command."""

from __future__ import annotations

from typing import List

from .base import Command
from ..context import ConsoleContext
from ..output import emit_result


class StopCommand(Command):
    def __init__(self) -> None:
        super().__init__("stop", "Stop the server", aliases=("exit", "end"))

    def run(self, ctx: ConsoleContext, argv: List[str]) -> int:
        ctx.shutdown()
        emit_result("Stopped proxy")
        raise SystemExit(0)
