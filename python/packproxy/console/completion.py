"""Tab completion for the operator console.

``complete`` works on plain text and a cursor offset counted in characters,
so it can be tested without a terminal.  ``ConsoleCompleter`` adapts it to
prompt_toolkit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Sequence

from prompt_toolkit.completion import CompleteEvent, Completer, Completion
from prompt_toolkit.document import Document

from .context import ConsoleContext


@dataclass(frozen=True)
class Suggestion:
    text: str
    description: str = ""


@dataclass(frozen=True)
class CompletionResult:
    """Candidates plus the ``[start, end)`` character span they replace."""

    suggestions: List[Suggestion] = field(default_factory=list)
    start: int = 0
    end: int = 0


COMMANDS: Sequence[Suggestion] = (
    Suggestion("players", "List all connected players"),
    Suggestion("transfer", "Transfer a player to another server"),
    Suggestion("info", "Show server information"),
    Suggestion("stop", "Stop the server"),
    Suggestion("exit", "Stop the server"),
)


def filter_has_prefix(suggestions: Iterable[Suggestion], prefix: str) -> List[Suggestion]:
    needle = prefix.lower()
    return [entry for entry in suggestions if entry.text.lower().startswith(needle)]


def complete(
    text: str,
    cursor: int,
    player_names: Callable[[], Iterable[str]],
    server_names: Callable[[], Iterable[str]],
) -> CompletionResult:
    """Suggest completions for the word before ``cursor``.

    ``player_names`` and ``server_names`` are only called when their
    argument position is being completed.
    """
    cursor = max(0, min(cursor, len(text)))
    before = text[:cursor]
    word = before.rpartition(" ")[2]
    if not word:
        return CompletionResult(start=cursor, end=cursor)
    start = cursor - len(word)

    args = before.split(" ")
    if len(args) == 1:
        return CompletionResult(filter_has_prefix(COMMANDS, word), start, cursor)

    candidates: List[Suggestion] = []
    if args[0] == "transfer":
        if len(args) == 2:
            candidates = [Suggestion(name, "Connected player") for name in player_names()]
        elif len(args) == 3:
            candidates = [Suggestion(name, "Available server") for name in server_names()]
    return CompletionResult(filter_has_prefix(candidates, word), start, cursor)


class ConsoleCompleter(Completer):
    """prompt_toolkit completer backed by the live session registry and server map."""

    def __init__(self, ctx: ConsoleContext) -> None:
        self.ctx = ctx

    def get_completions(self, document: Document, complete_event: CompleteEvent) -> Iterable[Completion]:
        result = complete(
            document.text,
            document.cursor_position,
            self.ctx.player_names,
            self.ctx.servers.names,
        )
        for suggestion in result.suggestions:
            yield Completion(
                suggestion.text,
                start_position=result.start - document.cursor_position,
                display_meta=suggestion.description,
            )
