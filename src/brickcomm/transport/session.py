"""Socket-backed session handle shared by the bundled providers."""

from __future__ import annotations

import socket
from typing import BinaryIO

from brickcomm.logging_abstraction import get_logger

logger = get_logger(__name__)


class SocketSession:
    """Session handle over a connected stream socket.

    The input stream is buffered for reading; the output stream is buffered
    and must be flushed after each value, which the connection does.
    """

    def __init__(self, sock: socket.socket, remote_address: str):
        self._sock = sock
        self._remote_address = remote_address
        self._input: BinaryIO = sock.makefile("rb")
        self._output: BinaryIO = sock.makefile("wb")

    @property
    def remote_address(self) -> str:
        return self._remote_address

    @property
    def input_stream(self) -> BinaryIO:
        return self._input

    @property
    def output_stream(self) -> BinaryIO:
        return self._output

    def close(self) -> None:
        """Close the socket; the stream wrappers are closed by the connection."""
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            # Peer may already be gone; closing below still releases the fd
            logger.debug(
                "Socket shutdown failed: %s",
                e,
                extra={"remote_address": self._remote_address, "error": str(e)},
            )
        self._sock.close()

    def __repr__(self) -> str:
        return f"SocketSession({self._remote_address})"
