"""Wired provider over TCP.

Endpoints are ``host:port`` strings. Listening binds lazily on the first
``await_incoming`` call and accepts one session per call.
"""

from __future__ import annotations

import socket
import time

from brickcomm import const
from brickcomm.logging_abstraction import get_logger

from .provider import TransportProvider
from .session import SocketSession
from .types import LocalIdentity

logger = get_logger(__name__)


def split_endpoint(endpoint: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts.

    Raises:
        ValueError: If the port is missing or not an integer
    """
    host, sep, port = endpoint.rpartition(":")
    if not sep or not port.isdigit():
        error_msg = f"endpoint must be host:port, got {endpoint!r}"
        raise ValueError(error_msg)
    return host or "127.0.0.1", int(port)


class TcpTransport(TransportProvider):
    """TCP stand-in for a cable between two devices."""

    kind = "tcp"

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 0,
        name: str | None = None,
        connect_timeout_ms: int | None = None,
        io_timeout_ms: int | None = None,
    ):
        """
        Initialize TCP transport parameters.

        Args:
            host: Listen address
            port: Listen port (0 picks a free port on first listen)
            name: Local device name (default: the host name)
            connect_timeout_ms: Dial timeout (default: BRICKCOMM_CONNECT_TIMEOUT_MS)
            io_timeout_ms: Read/write timeout on sessions, None blocks indefinitely
        """
        self.host = host
        self.port = port
        self.name = name
        self.connect_timeout_ms = (
            const.BRICKCOMM_CONNECT_TIMEOUT_MS if connect_timeout_ms is None else connect_timeout_ms
        )
        self.io_timeout_ms = io_timeout_ms
        self._listener: socket.socket | None = None

    def local_identity(self) -> LocalIdentity:
        return LocalIdentity(self.name or socket.gethostname(), f"{self.host}:{self.port}")

    def _listen(self) -> socket.socket:
        if self._listener is None:
            listener = socket.create_server((self.host, self.port))
            self.port = listener.getsockname()[1]
            self._listener = listener
            logger.info(
                "Listening on %s:%d",
                self.host,
                self.port,
                extra={"host": self.host, "port": self.port},
            )
        return self._listener

    def _session(self, sock: socket.socket, remote: str) -> SocketSession:
        sock.settimeout(None if self.io_timeout_ms is None else self.io_timeout_ms / 1000.0)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return SocketSession(sock, remote)

    def await_incoming(self, timeout_ms: int) -> SocketSession | None:
        listener = self._listen()
        listener.settimeout(max(timeout_ms, 0) / 1000.0)
        try:
            sock, (peer_host, peer_port, *_) = listener.accept()
        except (TimeoutError, BlockingIOError):
            # A zero timeout puts the listener in non-blocking mode
            logger.debug("No incoming connection within %dms", timeout_ms, extra={"port": self.port})
            return None
        return self._session(sock, f"{peer_host}:{peer_port}")

    def dial(self, endpoint: str) -> SocketSession | None:
        host, port = split_endpoint(endpoint)
        start_time = time.perf_counter()
        try:
            sock = socket.create_connection((host, port), timeout=self.connect_timeout_ms / 1000.0)
        except OSError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Connection to %s:%d failed after %.1fms",
                host,
                port,
                elapsed_ms,
                extra={"host": host, "port": port, "elapsed_ms": elapsed_ms, "error": str(e)},
            )
            return None
        return self._session(sock, f"{host}:{port}")

    def close(self) -> None:
        """Stop listening."""
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    def __repr__(self) -> str:
        return f"TcpTransport({self.host}:{self.port})"
