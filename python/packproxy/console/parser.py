"""Console command-line tokenizer."""

from __future__ import annotations

from typing import List


def split_command(line: str) -> List[str]:
    """Split a console line into whitespace-separated tokens."""
    if not line:
        return []
    return line.split()
