"""Console command registry and dispatch."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from ..context import ConsoleContext
from ..output import emit_error, emit_result
from ..parser import split_command
from .base import Command
from .info import InfoCommand
from .players import PlayersCommand
from .stop import StopCommand
from .transfer import TransferCommand

LOGGER = logging.getLogger("packproxy.console.commands")


class CommandRegistry:
    """Stores the known commands and resolves aliases."""

    def __init__(self) -> None:
        self._commands: Dict[str, Command] = {}
        self._ordered: List[Command] = []

    def register(self, command: Command) -> None:
        self._ordered.append(command)
        self._commands[command.name] = command
        for alias in command.aliases:
            self._commands[alias] = command

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name)

    def list_commands(self) -> Iterable[Command]:
        return self._ordered

    def dispatch(self, ctx: ConsoleContext, line: str) -> int:
        """Run one console line. Empty lines are ignored."""
        argv = split_command(line)
        if not argv:
            return 0
        cmd_name, *cmd_args = argv
        command = self.get(cmd_name)
        if command is None:
            emit_result(f"Unknown command: {cmd_name}")
            emit_result("Available commands: " + ", ".join(entry.name for entry in self._ordered))
            return 1
        try:
            return command.run(ctx, cmd_args)
        except SystemExit:
            raise
        except Exception as exc:
            LOGGER.exception("command failed")
            emit_error(f"Command '{cmd_name}' failed: {exc}")
            return 2


def build_registry() -> CommandRegistry:
    registry = CommandRegistry()
    for command in (PlayersCommand(), TransferCommand(), InfoCommand(), StopCommand()):
        registry.register(command)
    return registry


__all__ = ["Command", "CommandRegistry", "build_registry"]
