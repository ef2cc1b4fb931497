"""HTTP distribution of resource packs.

``ResourcePackServer`` serves ``GET /<uuid>`` from a :class:`PackCache` so
packs can be fetched over HTTP (directly or through a CDN) instead of being
streamed in-band by the proxy.  ``rewrite_for_cdn`` turns the local packs
into URL-backed ones once the server reports ready.
"""

from __future__ import annotations

import enum
import logging
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import List, Optional, Sequence, Tuple
from urllib.parse import unquote

from .cache import PackCache
from .errors import PackError, PackNotFoundError, StartupError
from .packs import RemotePack, ResourcePack

LOGGER = logging.getLogger("packproxy.distribution")


class ReadinessGate:
    """Set-once latch: every current and future waiter is released by the first signal."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()

    def signal(self) -> bool:
        """Release waiters. Returns False if the gate was already open."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    @property
    def is_open(self) -> bool:
        return self._event.is_set()


class ServerState(enum.Enum):
    NOT_STARTED = "not_started"
    LISTENING = "listening"
    CLOSED = "closed"


class _PackHTTPServer(ThreadingHTTPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, server_address: Tuple[str, int], cache: PackCache) -> None:
        super().__init__(server_address, _PackRequestHandler, bind_and_activate=False)
        self.cache = cache


class _PackRequestHandler(BaseHTTPRequestHandler):
    server: _PackHTTPServer
    server_version = "packproxy"

    def do_GET(self) -> None:  # noqa: N802 - http.server naming
        path = unquote(self.path.split("?", 1)[0])
        uuid = path[1:] if path.startswith("/") else path
        LOGGER.debug("Received request path=%s", uuid)

        # traversal guard; anything else that is not a known uuid simply misses
        if not uuid or ".." in uuid or "/" in uuid:
            self._send_text(HTTPStatus.NOT_FOUND, "404 page not found\n")
            return

        try:
            content = self.server.cache.get(uuid)
        except PackNotFoundError:
            LOGGER.debug("Resource pack not found uuid=%s", uuid)
            self._send_text(HTTPStatus.NOT_FOUND, "404 page not found\n")
            return
        except PackError as exc:
            LOGGER.error("Failed to read resource pack uuid=%s error=%s", uuid, exc)
            self._send_text(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal server error\n")
            return

        try:
            self.send_response(HTTPStatus.OK)
            self.send_header("Content-Disposition", f"attachment; filename={uuid}.mcpack")
            self.send_header("Content-Type", "application/zip")
            self.send_header("Content-Length", str(len(content)))
            self.end_headers()
            self.wfile.write(content)
        except OSError as exc:
            LOGGER.error("Failed to write resource pack to response uuid=%s error=%s", uuid, exc)
            self.close_connection = True
            return
        LOGGER.debug("Served resource pack uuid=%s size=%d", uuid, len(content))

    def _send_text(self, status: HTTPStatus, body: str) -> None:
        payload = body.encode("utf-8")
        try:
            self.send_response(status)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.send_header("X-Content-Type-Options", "nosniff")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)
        except OSError as exc:
            LOGGER.debug("Failed to write response status=%s error=%s", int(status), exc)
            self.close_connection = True

    def log_message(self, format: str, *args) -> None:  # noqa: A002 - signature from http.server
        LOGGER.debug("%s - %s", self.address_string(), format % args)


class ResourcePackServer:
    """Serves cached pack bytes by UUID over plain HTTP."""

    def __init__(self, cache: PackCache, port: int, *, host: str = "") -> None:
        self.cache = cache
        self.host = host
        self.port = port
        self.ready = ReadinessGate()
        self._state = ServerState.NOT_STARTED
        self._state_lock = threading.Lock()
        self._httpd: Optional[_PackHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        if self._httpd is None:
            return None
        host, port = self._httpd.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        """Bind the listener, open the readiness gate, then serve on a daemon thread.

        Raises :class:`StartupError` if the socket cannot be bound; the server
        then stays in ``NOT_STARTED``.
        """
        with self._state_lock:
            if self._state is not ServerState.NOT_STARTED:
                raise StartupError(f"resource pack server cannot start from state {self._state.value}")
            LOGGER.info("Starting resource pack HTTP server address=%s:%d", self.host or "*", self.port)
            httpd = _PackHTTPServer((self.host, self.port), self.cache)
            try:
                httpd.server_bind()
                httpd.server_activate()
            except OSError as exc:
                httpd.server_close()
                raise StartupError(f"cannot bind resource pack server on port {self.port}: {exc}") from exc
            self._httpd = httpd
            self._state = ServerState.LISTENING
            self.ready.signal()
            self._thread = threading.Thread(target=httpd.serve_forever, name="ResourcePackServer", daemon=True)
            self._thread.start()

    def wait_for_ready(self, timeout: Optional[float] = None) -> bool:
        return self.ready.wait(timeout)

    def close(self) -> None:
        """Stop accepting connections and release the socket. Safe to call more than once."""
        with self._state_lock:
            previous, self._state = self._state, ServerState.CLOSED
            httpd, self._httpd = self._httpd, None
        if previous is not ServerState.LISTENING or httpd is None:
            return
        httpd.shutdown()
        httpd.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
        LOGGER.info("Resource pack HTTP server closed")

    def update_packs(self, packs: Sequence[ResourcePack]) -> None:
        self.cache.replace(packs)


def rewrite_for_cdn(packs: Sequence[ResourcePack], base_url: str) -> List[ResourcePack]:
    """Return URL-backed copies of ``packs`` pointing at ``<base_url>/<uuid>``.

    Call only after the distribution server has signalled ready, otherwise
    clients may be told to fetch from a server that is not yet listening.
    """
    base = base_url.rstrip("/")
    return [RemotePack.from_pack(pack, f"{base}/{pack.uuid}") for pack in packs]
