"""Command base class."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from ..context import ConsoleContext


@dataclass
class Command:
    """A console command. ``run`` returns 0 on success, 1 on bad input, 2 on failure."""

    name: str
    description: str
    usage: str = ""
    aliases: Sequence[str] = field(default_factory=tuple)

    def run(self, ctx: ConsoleContext, argv: List[str]) -> int:
        raise NotImplementedError("Command must implement run()")
