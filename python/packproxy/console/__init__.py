"""Operator console: history, completion and command dispatch."""

from __future__ import annotations

from .commands import CommandRegistry, build_registry
from .context import ConsoleContext
from .history import HistoryStore

__all__ = ["CommandRegistry", "ConsoleContext", "HistoryStore", "build_registry"]
