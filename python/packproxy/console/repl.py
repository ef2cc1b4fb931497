"""Interactive operator console."""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, List, Tuple

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import set_title
from prompt_toolkit.styles import Style

from .commands import CommandRegistry
from .completion import ConsoleCompleter
from .context import ConsoleContext

LOGGER = logging.getLogger("packproxy.console.repl")

CONSOLE_TITLE = "packproxy console"

CONSOLE_STYLE = Style.from_dict(
    {
        "prompt": "ansiyellow",
        "completion-menu.completion": "bg:ansibrightblack ansiwhite",
        "completion-menu.completion.current": "bg:ansiblue ansiwhite",
        "completion-menu.meta.completion": "bg:ansiblack ansiwhite",
        "completion-menu.meta.completion.current": "bg:ansiblue ansiwhite",
    }
)


@contextmanager
def _logging_through_prompt() -> Iterator[None]:
    """Route root stream handlers through prompt_toolkit so log lines don't break the prompt."""
    with patch_stdout(raw=True):
        moved: List[Tuple[logging.StreamHandler, object]] = []
        for handler in logging.getLogger().handlers:
            if type(handler) is logging.StreamHandler and handler.stream in (sys.__stderr__, sys.__stdout__):
                previous = handler.setStream(sys.stderr)
                if previous is not None:
                    moved.append((handler, previous))
        try:
            yield
        finally:
            for handler, stream in moved:
                handler.setStream(stream)


class ConsoleREPL:
    """Line-editing shell: history, tab completion, one command per line."""

    def __init__(self, ctx: ConsoleContext, registry: CommandRegistry) -> None:
        self.ctx = ctx
        self.registry = registry

    def build_session(self, **session_kwargs: Any) -> PromptSession:
        history = InMemoryHistory()
        if self.ctx.history is not None:
            for entry in self.ctx.history.snapshot():
                history.append_string(entry)
        return PromptSession(
            [("class:prompt", "> ")],
            history=history,
            completer=ConsoleCompleter(self.ctx),
            complete_while_typing=True,
            style=CONSOLE_STYLE,
            **session_kwargs,
        )

    def run(self) -> int:
        set_title(CONSOLE_TITLE)
        session = self.build_session()
        with _logging_through_prompt():
            while True:
                try:
                    line = session.prompt()
                except (EOFError, KeyboardInterrupt):
                    LOGGER.info("Exiting console...")
                    self.ctx.shutdown()
                    return 0
                self.execute(line)

    def execute(self, line: str) -> int:
        """Record ``line`` in history and dispatch it. Blank lines do nothing."""
        stripped = line.strip()
        if not stripped:
            return 0
        if self.ctx.history is not None:
            self.ctx.history.append(stripped)
        return self.registry.dispatch(self.ctx, stripped)
