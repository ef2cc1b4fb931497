"""Completion tests for the operator console."""

from __future__ import annotations

from prompt_toolkit.document import Document

from packproxy.console.completion import COMMANDS, ConsoleCompleter, complete


def _players():
    return ["Alice", "Bob"]


def _servers():
    return ["lobby", "island1"]


def _texts(result):
    return [entry.text for entry in result.suggestions]


def test_command_prefix_completes_transfer_only():
    result = complete("trans", 5, _players, _servers)
    assert _texts(result) == ["transfer"]
    assert (result.start, result.end) == (0, 5)


def test_command_completion_keeps_vocabulary_order_and_ignores_case():
    result = complete("S", 1, _players, _servers)
    assert _texts(result) == ["stop"]
    result = complete("e", 1, _players, _servers)
    assert _texts(result) == ["exit"]
    assert [entry.text for entry in COMMANDS] == ["players", "transfer", "info", "stop", "exit"]


def test_empty_word_produces_nothing():
    assert complete("", 0, _players, _servers).suggestions == []
    result = complete("transfer ", 9, _players, _servers)
    assert result.suggestions == []
    assert (result.start, result.end) == (9, 9)


def test_player_name_completion():
    result = complete("transfer ali", 12, _players, _servers)
    assert _texts(result) == ["Alice"]
    assert result.suggestions[0].description == "Connected player"
    assert (result.start, result.end) == (9, 12)


def test_server_name_completion():
    result = complete("transfer Alice lo", 17, _players, _servers)
    assert _texts(result) == ["lobby"]
    assert (result.start, result.end) == (15, 17)


def test_players_and_info_have_no_argument_completion():
    assert complete("players A", 9, _players, _servers).suggestions == []
    assert complete("info l", 6, _players, _servers).suggestions == []
    assert complete("transfer Alice lobby x", 22, _players, _servers).suggestions == []


def test_completion_uses_text_before_cursor():
    text = "transfer Al lobby"
    result = complete(text, 11, _players, _servers)
    assert _texts(result) == ["Alice"]
    assert (result.start, result.end) == (9, 11)


def test_cursor_counts_characters_not_bytes():
    players = lambda: ["Zoë", "Zoey"]  # noqa: E731
    text = "transfer Zoë"
    result = complete(text, len(text), players, _servers)
    assert _texts(result) == ["Zoë"]
    assert (result.start, result.end) == (9, 12)


def test_sources_only_queried_when_needed():
    calls = []

    def players():
        calls.append("players")
        return ["Alice"]

    def servers():
        calls.append("servers")
        return ["lobby"]

    complete("tra", 3, players, servers)
    assert calls == []
    complete("transfer A", 10, players, servers)
    complete("transfer A l", 12, players, servers)
    assert calls == ["players", "servers"]


def test_prompt_toolkit_adapter_reads_live_sessions(console_ctx, engine):
    completer = ConsoleCompleter(console_ctx)
    doc = Document("transfer B", cursor_position=len("transfer B"))
    results = list(completer.get_completions(doc, None))
    assert [c.text for c in results] == ["Bob"]
    assert results[0].start_position == -1
    assert engine.sessions_calls == 1


def test_prompt_toolkit_adapter_completes_servers_from_map(console_ctx):
    completer = ConsoleCompleter(console_ctx)
    doc = Document("transfer Alice is", cursor_position=len("transfer Alice is"))
    results = list(completer.get_completions(doc, None))
    assert [c.text for c in results] == ["island1"]
    assert results[0].start_position == -2
