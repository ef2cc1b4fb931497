"""Stub engine, sessions and pack builders shared by the tests."""

from __future__ import annotations

import io
import json
import threading
import zipfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from packproxy.engine import EngineOptions, ListenOptions


class StubSession:
    """Records what the console and processors ask of a session."""

    def __init__(self, display_name: str, *, transfer_error: Optional[Exception] = None) -> None:
        self.display_name = display_name
        self.transfer_error = transfer_error
        self.login_error: Optional[Exception] = None
        self.transfers: List[Tuple[str, float]] = []
        self.disconnects: List[str] = []
        self.closed_with: Optional[BaseException] = None
        self.processor: Any = None
        self.animation: Any = None
        self.logins: List[float] = []

    def transfer(self, address: str, timeout: float) -> None:
        self.transfers.append((address, timeout))
        if self.transfer_error is not None:
            raise self.transfer_error

    def disconnect(self, message: str) -> None:
        self.disconnects.append(message)

    def close_with_error(self, error: BaseException) -> None:
        self.closed_with = error

    def login(self, timeout: float) -> None:
        self.logins.append(timeout)
        if self.login_error is not None:
            raise self.login_error

    def set_processor(self, processor: Any) -> None:
        self.processor = processor

    def set_animation(self, animation: Any) -> None:
        self.animation = animation


class StubEngine:
    """In-memory engine: a fixed session list and a queue of sessions to accept."""

    def __init__(self, sessions: Optional[List[StubSession]] = None, *, bind_address: str = "0.0.0.0:19132") -> None:
        self._sessions = list(sessions or [])
        self.bind_address = bind_address
        self.options: Optional[EngineOptions] = None
        self.listen_options: Optional[ListenOptions] = None
        self.listen_error: Optional[Exception] = None
        self.closed = False
        self.sessions_calls = 0
        self._pending: List[StubSession] = []
        self._cond = threading.Condition()

    def sessions(self) -> List[StubSession]:
        self.sessions_calls += 1
        return list(self._sessions)

    def listen(self, options: ListenOptions) -> None:
        if self.listen_error is not None:
            raise self.listen_error
        self.listen_options = options

    def queue(self, session: StubSession) -> None:
        with self._cond:
            self._pending.append(session)
            self._sessions.append(session)
            self._cond.notify_all()

    def accept(self) -> StubSession:
        with self._cond:
            while not self._pending:
                if self.closed:
                    raise ConnectionError("engine closed")
                self._cond.wait(0.05)
            return self._pending.pop(0)

    def close(self) -> None:
        with self._cond:
            self.closed = True
            self._cond.notify_all()


@dataclass
class RecordingFactory:
    """Engine factory that hands out a prepared StubEngine."""

    engine: StubEngine
    calls: List[Tuple[EngineOptions, Any]] = field(default_factory=list)

    def __call__(self, options: EngineOptions, logger: Any) -> StubEngine:
        self.calls.append((options, logger))
        self.engine.options = options
        return self.engine


@dataclass
class FakeTransfer:
    address: str
    port: int = 0


class FakePacketContext:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


def build_pack_bytes(uuid: str, name: str = "Demo Pack", version: Tuple[int, int, int] = (1, 0, 0), *, extra: Optional[Dict[str, bytes]] = None) -> bytes:
    manifest = {
        "format_version": 2,
        "header": {"name": name, "uuid": uuid, "version": list(version), "min_engine_version": [1, 20, 0]},
        "modules": [{"type": "resources", "uuid": "00000000-0000-0000-0000-00000000beef", "version": list(version)}],
    }
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("manifest.json", json.dumps(manifest))
        for path, data in (extra or {}).items():
            archive.writestr(path, data)
    return buffer.getvalue()
