"""Proxy control plane: startup sequencing, accept loop and shutdown."""

from __future__ import annotations

import logging
import os
import platform
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Any, Callable, List, Optional

from . import __version__
from .cache import PackCache
from .config import ProxyConfig, ServerMap
from .console import ConsoleContext, HistoryStore, build_registry
from .console.repl import ConsoleREPL
from .distribution import ResourcePackServer, rewrite_for_cdn
from .engine import EngineOptions, ListenOptions, ProxyEngine, StaticDiscovery, load_factory
from .errors import StartupError
from .packs import ResourcePack, load_directory
from .processors import SessionHook

LOGGER = logging.getLogger("packproxy.app")

RESTART_MESSAGE = "Proxy restarting..."
ANTICHEAT_FLUSH_RATE: Optional[float] = None
DEFAULT_FLUSH_RATE = 0.05


def is_in_container(cgroup_path: Path = Path("/proc/1/cgroup")) -> bool:
    try:
        with cgroup_path.open("r", encoding="utf-8", errors="replace") as handle:
            return any("docker" in line or "kubepods" in line for line in handle)
    except OSError:
        return False


def console_available() -> bool:
    """Whether an interactive terminal can be used for the console."""
    if not sys.platform.startswith("linux"):
        return True
    if is_in_container():
        LOGGER.info("Not using console due to in container environment")
        return False
    try:
        fd = os.open("/dev/tty", os.O_RDONLY)
    except OSError:
        LOGGER.info("Not using console due to /dev/tty not exists")
        return False
    os.close(fd)
    return True


class ProxyApp:
    """Wires configuration, packs, the distribution server and the engine together.

    Startup runs strictly in order: load packs, bind the distribution server,
    wait for it to report ready, rewrite packs to download URLs, then start
    the engine listener.  A failure at any step raises and nothing after it
    runs.
    """

    def __init__(
        self,
        conf: ProxyConfig,
        *,
        engine_factory: Optional[Callable[..., ProxyEngine]] = None,
        anticheat_factory: Optional[Callable[..., Any]] = None,
        history_path: Optional[str | Path] = None,
    ) -> None:
        self.conf = conf
        self.servers = ServerMap.from_config(conf)
        self.engine_factory = engine_factory
        self.anticheat_factory = anticheat_factory
        self.history_path = history_path if history_path is not None else conf.history_file
        self.cache: Optional[PackCache] = None
        self.pack_server: Optional[ResourcePackServer] = None
        self.engine: Optional[ProxyEngine] = None
        self.ctx: Optional[ConsoleContext] = None
        self.packs: List[ResourcePack] = []
        self._accept_thread: Optional[threading.Thread] = None
        self._stopping = threading.Event()

    # ------------------------------------------------------------------ #
    # Startup
    # ------------------------------------------------------------------ #
    def load_packs(self) -> List[ResourcePack]:
        packs = load_directory(self.conf.resource_pack_dir, self.conf.content_keys)
        LOGGER.info("Loaded resource packs count=%d", len(packs))
        return packs

    def start_distribution(self, packs: List[ResourcePack]) -> List[ResourcePack]:
        """Serve ``packs`` over HTTP and return their URL-backed replacements."""
        cdn = self.conf.cdn_config
        if not cdn.enabled or not packs:
            return packs
        self.cache = PackCache(packs)
        self.pack_server = ResourcePackServer(self.cache, cdn.port, host=cdn.bind_host)
        self.pack_server.start()
        self.pack_server.wait_for_ready()
        port = cdn.port
        if not port and self.pack_server.address is not None:
            port = self.pack_server.address[1]
        base_url = cdn.base_url(port)
        LOGGER.info("Resource pack HTTP server is ready baseURL=%s", base_url)

        remote = rewrite_for_cdn(packs, base_url)
        for pack in remote:
            LOGGER.debug("Loaded resource pack name=%s uuid=%s url=%s", pack.name, pack.uuid, pack.download_url)
        LOGGER.info("Modified resource packs to use HTTP URLs")
        return remote

    def _resolve_factories(self) -> None:
        if self.engine_factory is None:
            if not self.conf.engine:
                raise StartupError("no proxying engine configured (set 'engine' in the config)")
            self.engine_factory = load_factory(self.conf.engine, purpose="engine")
        if self.conf.anticheat_enabled and self.anticheat_factory is None:
            if not self.conf.anticheat:
                raise StartupError("anticheat_enabled requires 'anticheat' in the config")
            self.anticheat_factory = load_factory(self.conf.anticheat, purpose="anticheat")

    def engine_options(self) -> EngineOptions:
        default = self.servers.default_address
        return EngineOptions(
            discovery=StaticDiscovery(default, default),
            bind_addr=self.conf.bind_addr,
            shutdown_message=self.conf.shutdown_message,
            auto_login=not self.conf.anticheat_enabled,
        )

    def listen_options(self, packs: List[ResourcePack]) -> ListenOptions:
        return ListenOptions(
            status_name=self.conf.name,
            resource_packs=list(packs),
            packs_required=bool(packs),
            flush_rate=ANTICHEAT_FLUSH_RATE if self.conf.anticheat_enabled else DEFAULT_FLUSH_RATE,
        )

    def start(self) -> ConsoleContext:
        """Run the startup chain and begin accepting sessions."""
        self._resolve_factories()
        engine_factory = self.engine_factory
        if engine_factory is None:
            raise StartupError("no proxying engine configured (set 'engine' in the config)")
        packs = self.load_packs()
        try:
            self.packs = self.start_distribution(packs)
            engine = engine_factory(self.engine_options(), logging.getLogger("packproxy.engine"))
            engine.listen(self.listen_options(self.packs))
        except StartupError:
            self._close_pack_server()
            raise
        except Exception as exc:
            self._close_pack_server()
            raise StartupError(f"proxy failed to listen: {exc}") from exc
        self.engine = engine

        LOGGER.info(
            "Starting proxy anticheat-enabled=%s addr=%s version=%s python-version=%s",
            self.conf.anticheat_enabled,
            engine.bind_address,
            __version__,
            platform.python_version(),
        )
        self.ctx = ConsoleContext(
            engine=engine,
            servers=self.servers,
            conf=self.conf,
            pack_server=self.pack_server,
            stopping=self._stopping,
        )
        hook = SessionHook(self.conf, self.servers, engine, anticheat_factory=self.anticheat_factory)
        self._accept_thread = threading.Thread(target=self.accept_loop, args=(hook,), name="accept-loop", daemon=True)
        self._accept_thread.start()
        return self.ctx

    def accept_loop(self, hook: Callable[[Any], Any]) -> None:
        engine = self.engine
        if engine is None:
            raise StartupError("accept loop started before the engine is listening")
        while not self._stopping.is_set():
            try:
                session = engine.accept()
            except Exception as exc:
                if self._stopping.is_set():
                    break
                LOGGER.debug("accept failed error=%s", exc)
                continue
            try:
                hook(session)
            except Exception:
                LOGGER.exception("failed to prepare session")

    # ------------------------------------------------------------------ #
    # Running and shutdown
    # ------------------------------------------------------------------ #
    def run(self, *, console: bool = True) -> int:
        ctx = self.start()
        if console and console_available():
            ctx.history = HistoryStore(self.history_path, limit=self.conf.history_size)
            repl = ConsoleREPL(ctx, build_registry())
            try:
                return repl.run()
            finally:
                self._stopping.set()
        return self.run_headless()

    def run_headless(self) -> int:
        def _terminate(signum: int, frame: Any) -> None:
            LOGGER.info("Received signal %s, shutting down", signal.Signals(signum).name)
            self.terminate()
            raise SystemExit(0)

        signal.signal(signal.SIGINT, _terminate)
        signal.signal(signal.SIGTERM, _terminate)
        while not self._stopping.wait(1.0):
            pass
        return 0

    def terminate(self, *, grace: float = 1.0) -> None:
        """Disconnect every session, then close the pack server and the engine."""
        self._stopping.set()
        if self.engine is not None:
            for session in list(self.engine.sessions()):
                try:
                    session.disconnect(RESTART_MESSAGE)
                except Exception as exc:
                    LOGGER.debug("disconnect failed player=%s error=%s", session.display_name, exc)
            if grace > 0:
                time.sleep(grace)
        if self.ctx is not None:
            self.ctx.shutdown()
        else:
            self._close_pack_server()

    def _close_pack_server(self) -> None:
        if self.pack_server is not None:
            self.pack_server.close()
