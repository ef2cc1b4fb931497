"""Operator-facing output helpers."""

from __future__ import annotations

import logging
from typing import Iterable, Tuple

from tabulate import tabulate

LOGGER = logging.getLogger("packproxy.console")


def emit_result(message: str) -> None:
    """Report a command result to the operator."""
    LOGGER.info(message)


def emit_error(message: str) -> None:
    """Report a failed operation; the console keeps running."""
    LOGGER.error(message)


def render_server_table(servers: Iterable[Tuple[str, str]], *, default: str = "") -> str:
    rows = [(("*" if name == default else "") + name, addr) for name, addr in servers]
    if not rows:
        return "  (no servers)"
    return tabulate(rows, headers=["Server", "Address"], tablefmt="simple")


__all__ = ["emit_result", "emit_error", "render_server_table"]
