"""Exception hierarchy for link errors.

Every operation that touches the transport fails with a LinkError subclass.
The failure category is a closed enumeration (ErrorKind) so callers can
branch on ``err.kind`` without caring which subclass was raised.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Closed set of link failure categories."""

    CONN = "conn"  # not connected / connection could not be established
    SEND = "send"
    RECV = "recv"
    TIMEOUT = "timeout"


class LinkError(Exception):
    """Base exception for all link errors.

    Attributes:
        kind: Failure category
        reason: Specific failure reason (e.g., "not_connected", "broken_pipe")
    """

    kind: ErrorKind = ErrorKind.CONN

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        super().__init__(message or f"{self.kind.value} error: {reason}")


class NotConnectedError(LinkError):
    """Operation attempted while the connection is not established.

    Raised before the stream is touched, so nothing reaches the wire.

    Attributes:
        operation: Name of the refused operation (e.g., "send_int")
    """

    kind = ErrorKind.CONN

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__("not_connected", f"Cannot {operation}: not connected")


class ConnectFailedError(LinkError):
    """A connect attempt did not produce a session.

    Only raised by connections in strict mode; by default a failed connect
    leaves the connection disconnected and returns False.

    Attributes:
        identifier: Identifier or endpoint that could not be reached
        attempts: Value of the attempt counter after this attempt
    """

    kind = ErrorKind.CONN

    def __init__(self, reason: str, identifier: str = "", attempts: int = 0):
        self.identifier = identifier
        self.attempts = attempts
        super().__init__(reason, f"Connect to {identifier or 'any peer'} failed: {reason} (attempt {attempts})")


class SendError(LinkError):
    """I/O failure while writing a value.

    Attributes:
        value_kind: Primitive kind being written (e.g., "int32")
    """

    kind = ErrorKind.SEND

    def __init__(self, reason: str, value_kind: str = ""):
        self.value_kind = value_kind
        super().__init__(reason, f"Failed to send {value_kind or 'value'}: {reason}")


class ReceiveError(LinkError):
    """I/O failure or premature end of stream while reading a value.

    Attributes:
        value_kind: Primitive kind being read (e.g., "text")
    """

    kind = ErrorKind.RECV

    def __init__(self, reason: str, value_kind: str = ""):
        self.value_kind = value_kind
        super().__init__(reason, f"Failed to receive {value_kind or 'value'}: {reason}")


class WireDecodeError(ReceiveError):
    """Received bytes cannot be decoded as the expected primitive.

    Attributes:
        data_preview: First 16 bytes of the offending data
    """

    def __init__(self, reason: str, value_kind: str = "", data: bytes = b""):
        # Only keep a short preview; payloads can be arbitrary application data
        self.data_preview = data[:16] if data else b""
        super().__init__(reason, value_kind)


class LinkTimeoutError(LinkError):
    """A bounded wait expired.

    Attributes:
        timeout_ms: Bound that was exceeded, when known (0 otherwise)
    """

    kind = ErrorKind.TIMEOUT

    def __init__(self, reason: str, timeout_ms: int = 0):
        self.timeout_ms = timeout_ms
        suffix = f" after {timeout_ms}ms" if timeout_ms else ""
        super().__init__(reason, f"Timed out: {reason}{suffix}")
