"""info command."""

from __future__ import annotations

import platform
import sys
import threading
from typing import List, Optional

from .base import Command
from ..context import ConsoleContext
from ..output import emit_result, render_server_table


def _peak_rss_mb() -> Optional[float]:
    if sys.platform == "win32":
        return None
    import resource

    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS, kilobytes elsewhere
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return peak / divisor


class InfoCommand(Command):
    def __init__(self) -> None:
        super().__init__("info", "Show server information")

    def run(self, ctx: ConsoleContext, argv: List[str]) -> int:
        emit_result(f"{ctx.conf.name} Information")
        emit_result(f"- Bind Address: {ctx.engine.bind_address}")
        emit_result(f"- Default Server: {ctx.servers.default_name}")
        emit_result(f"- Connected Players: {len(ctx.sessions())}")
        if ctx.pack_server is not None and ctx.pack_server.address is not None:
            host, port = ctx.pack_server.address
            emit_result(f"- Resource Pack Server: {host or '*'}:{port} ({len(ctx.pack_server.cache)} packs)")
        emit_result("Available Servers:")
        for line in render_server_table(ctx.servers.items(), default=ctx.servers.default_name).splitlines():
            emit_result(line)
        emit_result(f"Threads: {threading.active_count()}")
        emit_result(f"Python Version: {platform.python_version()}")
        emit_result(f"Allocated Memory Blocks: {sys.getallocatedblocks()}")
        peak = _peak_rss_mb()
        if peak is not None:
            emit_result(f"Peak Resident Memory: {peak:.2f} MB")
        return 0
