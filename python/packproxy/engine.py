"""Interfaces of the external proxying engine.

packproxy does not relay game traffic itself.  The engine is supplied by a
factory named in the configuration (``engine = "module:callable"``); the
factory is called with :class:`EngineOptions` and a logger and must return
an object satisfying :class:`ProxyEngine`.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Sequence, runtime_checkable

from .errors import StartupError
from .packs import ResourcePack

LOGGER = logging.getLogger("packproxy.engine")


@dataclass(frozen=True)
class StaticDiscovery:
    """Sends every player to the same server, both initially and on fallback."""

    address: str
    fallback: str

    def discover(self, session: Any) -> str:
        return self.address

    def discover_fallback(self, session: Any) -> str:
        return self.fallback


@dataclass
class EngineOptions:
    discovery: StaticDiscovery
    bind_addr: str
    shutdown_message: str = ""
    auto_login: bool = True
    latency_interval_ms: int = 1000
    sync_protocol: bool = False


@dataclass
class ListenOptions:
    status_name: str
    resource_packs: List[ResourcePack] = field(default_factory=list)
    packs_required: bool = False
    # seconds between packet flushes; None leaves flushing to the session processor
    flush_rate: Optional[float] = 0.05


@runtime_checkable
class TransferPacket(Protocol):
    """Server-to-client transfer instruction as surfaced by the engine."""

    address: str
    port: int


class PacketContext(Protocol):
    def cancel(self) -> None: ...


class ProxySession(Protocol):
    """A connected client as exposed by the engine's session registry."""

    @property
    def display_name(self) -> str: ...

    def transfer(self, address: str, timeout: float) -> None: ...

    def disconnect(self, message: str) -> None: ...

    def close_with_error(self, error: BaseException) -> None: ...

    def login(self, timeout: float) -> None: ...

    def set_processor(self, processor: Any) -> None: ...

    def set_animation(self, animation: Any) -> None: ...


class ProxyEngine(Protocol):
    @property
    def bind_address(self) -> str: ...

    def sessions(self) -> Sequence[ProxySession]: ...

    def listen(self, options: ListenOptions) -> None: ...

    def accept(self) -> ProxySession: ...

    def close(self) -> None: ...


def load_factory(path: str, *, purpose: str) -> Callable[..., Any]:
    """Resolve a ``module:attribute`` import path to a callable."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise StartupError(f"{purpose} factory must look like 'module:callable', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise StartupError(f"cannot import {purpose} module {module_name!r}: {exc}") from exc
    factory = module
    for part in attr.split("."):
        factory = getattr(factory, part, None)
        if factory is None:
            raise StartupError(f"{purpose} factory {path!r} not found")
    if not callable(factory):
        raise StartupError(f"{purpose} factory {path!r} is not callable")
    LOGGER.debug("Resolved %s factory %s", purpose, path)
    return factory
