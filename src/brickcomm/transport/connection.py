"""Generic connection core shared by the radio and wired bindings.

The connection owns the session lifecycle, the connection-attempt counter
and the dispatch of codec operations onto an established session. Transport
specifics are limited to how an identifier is resolved to an endpoint
(``_resolve``), which each binding implements.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Self

from brickcomm import const
from brickcomm.correlation import correlation_context, generate_correlation_id
from brickcomm.instrumentation import timed
from brickcomm.logging_abstraction import LinkLogger, get_logger
from brickcomm.metrics import registry
from brickcomm.protocol.codec import PrimitiveKind, WireCodec
from brickcomm.protocol.exceptions import (
    ConnectFailedError,
    LinkTimeoutError,
    NotConnectedError,
    ReceiveError,
    SendError,
    WireDecodeError,
)

from .provider import TransportProvider
from .types import ConnectionState, LocalIdentity, SessionHandle

logger = get_logger(__name__)


class Connection(ABC):
    """One logical session to a peer over a transport provider.

    Lifecycle: DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED.
    ``accept()`` and ``connect()`` increment the attempt counter before every
    attempt, whatever its outcome. A failed attempt, including one where the
    provider or the resolver raised, leaves the connection DISCONNECTED and
    returns False; with ``strict=True`` it raises a LinkError instead.

    Send/receive calls never change state: after a SendError or ReceiveError
    the caller decides whether to ``disconnect()``. A failed multi-byte
    transfer leaves the stream position unspecified, so reconnecting is the
    only safe recovery.

    Not reentrant: the streams and the session handle are shared mutable
    state. Issue at most one operation at a time per connection (one owner
    per connection, or an external lock).

    Attributes:
        provider: Transport provider this connection is bound to
        strict: Raise on failed connect attempts instead of returning False
        grace_ms: Pause between closing the streams and closing the session
        session_id: UUID v7 of the current session, None while disconnected
    """

    def __init__(
        self,
        provider: TransportProvider,
        name: str | None = None,
        address: str | None = None,
        *,
        strict: bool | None = None,
        grace_ms: int | None = None,
    ):
        """
        Initialize a disconnected connection.

        Args:
            provider: Transport provider for this binding
            name: Local device name; queried from the provider when omitted
            address: Local device address; queried from the provider when omitted
            strict: Raise ConnectFailedError/LinkTimeoutError on failed connects
                (default: BRICKCOMM_STRICT_CONNECT)
            grace_ms: Disconnect grace period (default: BRICKCOMM_DISCONNECT_GRACE_MS)
        """
        self.provider = provider
        self._name = name
        self._address = address
        self.strict = const.BRICKCOMM_STRICT_CONNECT if strict is None else strict
        self.grace_ms = const.BRICKCOMM_DISCONNECT_GRACE_MS if grace_ms is None else grace_ms

        self._state = ConnectionState.DISCONNECTED
        self._session: SessionHandle | None = None
        self._input: BinaryIO | None = None
        self._output: BinaryIO | None = None
        self._attempts = 0
        self.session_id: str | None = None
        self._idle_log: LinkLogger = logger.bind(transport=provider.kind)
        self._log = self._idle_log

    # Identity

    def _load_identity(self) -> None:
        if self._name is not None and self._address is not None:
            return
        identity: LocalIdentity = self.provider.local_identity()
        self._log.debug("Queried local identity: %s (%s)", identity.name, identity.address)
        if self._name is None:
            self._name = identity.name
        if self._address is None:
            self._address = identity.address

    @property
    def name(self) -> str:
        """Local device name."""
        self._load_identity()
        return self._name  # type: ignore[return-value]

    @property
    def address(self) -> str:
        """Local device address."""
        self._load_identity()
        return self._address  # type: ignore[return-value]

    def _clone_kwargs(self) -> dict[str, Any]:
        return {"strict": self.strict, "grace_ms": self.grace_ms}

    def clone(self) -> Self:
        """Create a new disconnected connection with the same local identity.

        This is the cheap way to build further connections: the provider is
        not queried again and no session state is copied.
        """
        return type(self)(self.provider, self.name, self.address, **self._clone_kwargs())

    # State

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def remote_address(self) -> str | None:
        """Address of the connected peer, or None while not connected."""
        if self._state is ConnectionState.CONNECTED and self._session is not None:
            return self._session.remote_address
        return None

    @property
    def connection_attempts(self) -> int:
        """Connect attempts since creation or the last reset."""
        return self._attempts

    def reset_connection_attempts(self) -> None:
        self._attempts = 0

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        registry.record_connection_state(self.address, state.value)

    # Lifecycle

    def _begin_attempt(self) -> None:
        self._attempts += 1
        if self.is_connected:
            self._log.info("Dropping session to %s before new connect attempt", self.remote_address)
            self.disconnect()
        self._set_state(ConnectionState.CONNECTING)

    def _establish(self, session: SessionHandle, mode: str) -> bool:
        self._session = session
        self._input = session.input_stream
        self._output = session.output_stream
        self.session_id = generate_correlation_id()
        self._log = self._idle_log.bind(session_id=self.session_id, remote_address=session.remote_address)
        self._set_state(ConnectionState.CONNECTED)
        registry.record_connect_attempt(self.provider.kind, mode, "success")
        self._log.info(
            "%s: connected to %s",
            self.provider.kind,
            session.remote_address,
            extra={"mode": mode, "attempt": self._attempts},
        )
        return True

    def _fail(self, reason: str, mode: str, identifier: str = "", timeout_ms: int = 0) -> bool:
        self._set_state(ConnectionState.DISCONNECTED)
        registry.record_connect_attempt(self.provider.kind, mode, reason)
        self._log.debug(
            "%s: %s",
            self.provider.kind,
            reason,
            extra={"mode": mode, "identifier": identifier, "attempt": self._attempts},
        )
        if self.strict:
            if timeout_ms:
                raise LinkTimeoutError(reason, timeout_ms)
            raise ConnectFailedError(reason, identifier, self._attempts)
        return False

    @timed("accept")
    def accept(self, timeout_ms: int | None = None) -> bool:
        """Wait for an inbound session from any peer.

        Args:
            timeout_ms: Wait bound (default: BRICKCOMM_CONNECT_TIMEOUT_MS)

        Returns:
            True if a session was established. On timeout or provider error
            the connection stays disconnected and False is returned (strict
            mode raises LinkTimeoutError or ConnectFailedError).
        """
        if timeout_ms is None:
            timeout_ms = const.BRICKCOMM_CONNECT_TIMEOUT_MS

        with correlation_context():
            self._begin_attempt()
            self._log.debug(
                "%s: waiting for incoming session",
                self.provider.kind,
                extra={"timeout_ms": timeout_ms, "attempt": self._attempts},
            )
            try:
                session = self.provider.await_incoming(timeout_ms)
            except Exception as e:
                self._log.exception("%s: accept failed: %s", self.provider.kind, e)
                return self._fail("accept_error", "accept")

            if session is None:
                return self._fail("no_incoming", "accept", timeout_ms=timeout_ms)
            return self._establish(session, "accept")

    @timed("connect")
    def connect(self, identifier: str) -> bool:
        """Resolve ``identifier`` and open a session to it.

        Returns:
            True if a session was established. If resolution or the dial
            fails, for whatever reason, the connection stays disconnected and
            False is returned (strict mode raises ConnectFailedError).
        """
        with correlation_context():
            self._begin_attempt()
            try:
                endpoint = self._resolve(identifier)
            except Exception as e:
                self._log.exception("%s: resolving %s failed: %s", self.provider.kind, identifier, e)
                return self._fail("resolve_error", "dial", identifier)
            if endpoint is None:
                return self._fail("peer_not_found", "dial", identifier)

            self._log.debug(
                "%s: dialing %s",
                self.provider.kind,
                endpoint,
                extra={"identifier": identifier, "attempt": self._attempts},
            )
            try:
                session = self.provider.dial(endpoint)
            except Exception as e:
                self._log.exception(
                    "%s: dial %s failed: %s",
                    self.provider.kind,
                    endpoint,
                    e,
                    extra={"endpoint": endpoint},
                )
                return self._fail("dial_error", "dial", identifier)

            if session is None:
                return self._fail("dial_failed", "dial", identifier)
            return self._establish(session, "dial")

    @abstractmethod
    def _resolve(self, identifier: str) -> str | None:
        """Map an identifier to a provider endpoint, None if unresolvable."""
        raise NotImplementedError

    def disconnect(self) -> None:
        """Tear down the session. No-op while not connected.

        Closing is best-effort: stream close errors are logged and swallowed.
        """
        if self._state is not ConnectionState.CONNECTED or self._session is None:
            return

        session = self._session
        for stream in (self._input, self._output):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError as e:
                self._log.debug("Error closing stream (non-fatal): %s", e)

        # Let in-flight bytes drain before the handle goes away
        time.sleep(self.grace_ms / 1000.0)

        try:
            session.close()
        except OSError as e:
            self._log.warning(
                "Error closing session (non-fatal): %s",
                e,
                extra={"error_type": type(e).__name__},
            )

        self._log.info("%s: disconnected from %s", self.provider.kind, session.remote_address)
        self._session = None
        self._input = None
        self._output = None
        self.session_id = None
        self._log = self._idle_log
        registry.record_disconnect(self.provider.kind)
        self._set_state(ConnectionState.DISCONNECTED)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.disconnect()

    # Values

    def send(self, kind: PrimitiveKind, value: int | str) -> None:
        """Write one value and flush it.

        Raises:
            NotConnectedError: If not connected (nothing is written)
            SendError: On a stream I/O failure
            LinkTimeoutError: If the transport's write timeout expires
            ValueError, TypeError: If the value does not fit the wire type
        """
        if not self.is_connected or self._output is None:
            raise NotConnectedError(f"send {kind.value}")

        payload = WireCodec.encode(kind, value)
        start_time = time.perf_counter()
        try:
            self._output.write(payload)
            self._output.flush()
        except TimeoutError as e:
            self._log_io_failure("send", kind, e)
            registry.record_value_sent(self.provider.kind, kind.value, "timeout")
            raise LinkTimeoutError(f"send_{kind.value}") from e
        except OSError as e:
            self._log_io_failure("send", kind, e)
            registry.record_value_sent(self.provider.kind, kind.value, "error")
            raise SendError(type(e).__name__, kind.value) from e

        registry.record_value_sent(self.provider.kind, kind.value, "success", time.perf_counter() - start_time)

    def receive(self, kind: PrimitiveKind) -> int | str:
        """Block until one value of ``kind`` has been read.

        Raises:
            NotConnectedError: If not connected (the stream is not touched)
            ReceiveError: On a stream I/O failure or premature end of stream
            LinkTimeoutError: If the transport's read timeout expires
        """
        if not self.is_connected or self._input is None:
            raise NotConnectedError(f"receive {kind.value}")

        try:
            value = WireCodec.read(kind, self._input)
        except WireDecodeError as e:
            self._log_io_failure("receive", kind, e)
            registry.record_value_received(self.provider.kind, kind.value, e.reason)
            raise
        except TimeoutError as e:
            self._log_io_failure("receive", kind, e)
            registry.record_value_received(self.provider.kind, kind.value, "timeout")
            raise LinkTimeoutError(f"receive_{kind.value}") from e
        except OSError as e:
            self._log_io_failure("receive", kind, e)
            registry.record_value_received(self.provider.kind, kind.value, "error")
            raise ReceiveError(type(e).__name__, kind.value) from e

        registry.record_value_received(self.provider.kind, kind.value, "success")
        return value

    def _log_io_failure(self, operation: str, kind: PrimitiveKind, error: Exception) -> None:
        self._log.error(
            "%s %s failed: %s",
            operation,
            kind.value,
            error,
            extra={"error_type": type(error).__name__},
        )

    def send_byte(self, value: int) -> None:
        self.send(PrimitiveKind.BYTE, value)

    def send_int(self, value: int) -> None:
        self.send(PrimitiveKind.INT32, value)

    def send_long(self, value: int) -> None:
        self.send(PrimitiveKind.INT64, value)

    def send_string(self, value: str) -> None:
        self.send(PrimitiveKind.TEXT, value)

    def receive_byte(self) -> int:
        return self.receive(PrimitiveKind.BYTE)  # type: ignore[return-value]

    def receive_int(self) -> int:
        return self.receive(PrimitiveKind.INT32)  # type: ignore[return-value]

    def receive_long(self) -> int:
        return self.receive(PrimitiveKind.INT64)  # type: ignore[return-value]

    def receive_string(self) -> str:
        return self.receive(PrimitiveKind.TEXT)  # type: ignore[return-value]

    def __repr__(self) -> str:
        remote = f" -> {self.remote_address}" if self.is_connected else ""
        return f"{type(self).__name__}({self._name or '?'}, {self._state.value}{remote})"
