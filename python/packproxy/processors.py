"""Per-session processors attached when the engine accepts a connection."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

from .config import ProxyConfig, ServerMap
from .engine import PacketContext, ProxyEngine, ProxySession, TransferPacket
from .errors import StartupError

LOGGER = logging.getLogger("packproxy.processors")

LOGIN_TIMEOUT = 10.0


@dataclass(frozen=True)
class FadeAnimation:
    """Camera fade played while a session moves between servers."""

    colour: Tuple[int, int, int, int] = (0, 0, 0, 0)
    fade_in: float = 0.32
    wait: float = 0.84
    fade_out: float = 0.23


DEFAULT_ANIMATION = FadeAnimation()


class TransferProcessor:
    """Relays packets untouched, except transfers that name a configured server.

    A backend may send a transfer whose address is a server *name*; the packet
    is cancelled and the session is moved to that server's address instead.
    """

    def __init__(self, session: ProxySession, servers: ServerMap, *, timeout: float = 10.0) -> None:
        self.session = session
        self.servers = servers
        self.timeout = timeout

    def process_server(self, ctx: PacketContext, packet: Any) -> None:
        if not isinstance(packet, TransferPacket):
            return
        address = self.servers.address_of(packet.address)
        if address is None:
            return
        ctx.cancel()
        try:
            self.session.transfer(address, self.timeout)
        except Exception as exc:
            LOGGER.error("failed to transfer address=%s error=%s", packet.address, exc)
            self.session.close_with_error(exc)

    def process_client(self, ctx: PacketContext, packet: Any) -> None:
        return None


class SessionHook:
    """Prepares every accepted session: fade animation plus a processor.

    With anticheat enabled the processor comes from the configured factory,
    which is called with ``session``, ``engine``, ``logger`` (a per-player
    file logger), ``settings``, ``on_error`` and ``on_close``.  Otherwise a
    :class:`TransferProcessor` is used.
    """

    def __init__(
        self,
        conf: ProxyConfig,
        servers: ServerMap,
        engine: ProxyEngine,
        *,
        anticheat_factory: Optional[Callable[..., Any]] = None,
        animation: FadeAnimation = DEFAULT_ANIMATION,
    ) -> None:
        self.conf = conf
        self.servers = servers
        self.engine = engine
        self.anticheat_factory = anticheat_factory
        self.animation = animation

    @property
    def anticheat_enabled(self) -> bool:
        return self.conf.anticheat_enabled and self.anticheat_factory is not None

    def __call__(self, session: ProxySession) -> Optional[threading.Thread]:
        session.set_animation(self.animation)
        if not self.anticheat_enabled:
            session.set_processor(TransferProcessor(session, self.servers, timeout=self.conf.transfer_timeout))
            return None
        thread = threading.Thread(
            target=self.attach_anticheat,
            args=(session,),
            name=f"anticheat-{session.display_name}",
            daemon=True,
        )
        thread.start()
        return thread

    def attach_anticheat(self, session: ProxySession) -> None:
        name = session.display_name
        if self.anticheat_factory is None:
            raise StartupError("anticheat processor requested without a factory")
        log_dir = Path(self.conf.player_log_dir)
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
        except OSError as exc:
            LOGGER.error("failed to create player log player=%s error=%s", name, exc)
            session.disconnect("failed to create log file")
            return
        handler.setLevel(logging.DEBUG)
        player_log = logging.getLogger(f"packproxy.player.{name}")
        player_log.setLevel(logging.DEBUG)
        player_log.propagate = False
        player_log.addHandler(handler)

        def close_log() -> None:
            player_log.removeHandler(handler)
            handler.close()

        def on_error(error: BaseException) -> None:
            LOGGER.error(
                "Error during processing player packet player=%s error=%s",
                name,
                error,
                exc_info=(type(error), error, error.__traceback__),
            )

        try:
            processor = self.anticheat_factory(
                session=session,
                engine=self.engine,
                logger=player_log,
                settings=self.conf.anticheat_settings,
                on_error=on_error,
                on_close=close_log,
            )
        except Exception as exc:
            LOGGER.error("failed to create anticheat processor player=%s error=%s", name, exc)
            session.disconnect(str(exc))
            close_log()
            return
        session.set_processor(processor)

        try:
            session.login(LOGIN_TIMEOUT)
        except concurrent.futures.CancelledError as exc:
            session.disconnect(str(exc) or "login cancelled")
            close_log()
        except Exception as exc:
            session.disconnect(str(exc))
            close_log()
            LOGGER.error("failed to login session player=%s error=%s", name, exc)
