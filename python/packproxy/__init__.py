"""
packproxy - control plane for a game proxy.

Loads backend servers and resource packs from ``config.toml``, serves the
packs over HTTP so clients can download them from a CDN, and runs an
operator console for inspecting and transferring connected players.  The
proxying engine itself is an external component reached through
``packproxy.engine``.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .cli import main  # noqa: E402

__all__ = ["main"]
