"""transfer command."""

from __future__ import annotations

from typing import List

from .base import Command
from ..context import ConsoleContext
from ..output import emit_error, emit_result


class TransferCommand(Command):
    def __init__(self) -> None:
        super().__init__(
            "transfer",
            "Transfer a player to another server",
            usage="transfer <player> <server>",
        )

    def run(self, ctx: ConsoleContext, argv: List[str]) -> int:
        if len(argv) != 2:
            emit_result(f"Usage: {self.usage}")
            return 1
        player_name, server_name = argv

        session = ctx.find_session(player_name)
        if session is None:
            emit_result(f"Player '{player_name}' not found")
            return 1

        address = ctx.servers.address_of(server_name)
        if address is None:
            emit_result(f"Server '{server_name}' not found")
            return 1

        try:
            session.transfer(address, ctx.transfer_timeout)
        except Exception as exc:
            emit_error(f"Failed to transfer player {player_name} to {server_name}: {exc}")
            return 2
        emit_result(f"Transferred {player_name} to {server_name}")
        return 0
