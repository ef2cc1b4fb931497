"""State shared by console commands."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from ..config import ProxyConfig, ServerMap
from ..distribution import ResourcePackServer
from ..engine import ProxyEngine, ProxySession
from .history import HistoryStore

LOGGER = logging.getLogger("packproxy.console.context")


@dataclass
class ConsoleContext:
    """Holds the engine, server map and resources the console operates on."""

    engine: ProxyEngine
    servers: ServerMap
    conf: ProxyConfig
    pack_server: Optional[ResourcePackServer] = None
    history: Optional[HistoryStore] = None
    stopping: threading.Event = field(default_factory=threading.Event)

    @property
    def transfer_timeout(self) -> float:
        return self.conf.transfer_timeout

    def sessions(self) -> List[ProxySession]:
        return list(self.engine.sessions())

    def player_names(self) -> List[str]:
        return [session.display_name for session in self.engine.sessions()]

    def find_session(self, name: str) -> Optional[ProxySession]:
        for session in self.engine.sessions():
            if session.display_name == name:
                return session
        return None

    def shutdown(self) -> None:
        """Close the pack server and the engine, then flush history."""
        self.stopping.set()
        if self.pack_server is not None:
            try:
                self.pack_server.close()
            except OSError as exc:
                LOGGER.error("Failed to close resource pack HTTP server error=%s", exc)
        try:
            self.engine.close()
        except Exception as exc:
            LOGGER.error("Failed to close proxy error=%s", exc)
        if self.history is not None:
            self.history.save()
