"""Unit tests for the generic connection state machine."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from brickcomm import const
from brickcomm.protocol.codec import PrimitiveKind
from brickcomm.protocol.exceptions import (
    ConnectFailedError,
    ErrorKind,
    LinkTimeoutError,
    NotConnectedError,
    ReceiveError,
    SendError,
    WireDecodeError,
)
from brickcomm.transport import connection as connection_module
from brickcomm.transport.loopback import LoopbackRadio
from brickcomm.transport.radio import RadioConnection
from brickcomm.transport.tcp import TcpTransport
from brickcomm.transport.types import ConnectionState
from brickcomm.transport.wired import WiredConnection
from tests.helpers.expectations import assert_link_error, expect_exception
from tests.helpers.fakes import FakeProvider, FakeSession

# Test constants
ACCEPT_TIMEOUT_MS = 100


def make_connection(provider: FakeProvider, **kwargs: object) -> WiredConnection:
    kwargs.setdefault("grace_ms", 0)
    return WiredConnection(provider, **kwargs)  # type: ignore[arg-type]


def connected(provider: FakeProvider, session: FakeSession | None = None, **kwargs: object) -> WiredConnection:
    session = session or FakeSession()
    provider.incoming.append(session)
    conn = make_connection(provider, **kwargs)
    assert conn.accept(ACCEPT_TIMEOUT_MS)
    return conn


class TestIdentity:
    """Tests for local identity and cloning."""

    def test_identity_queried_lazily_once(self, fake_provider: FakeProvider) -> None:
        conn = make_connection(fake_provider)
        assert fake_provider.identity_calls == 0

        assert conn.name == "NXT-A"
        assert conn.address == "00:16:53:00:00:0A"
        assert fake_provider.identity_calls == 1

    def test_explicit_identity_skips_provider(self, fake_provider: FakeProvider) -> None:
        conn = make_connection(fake_provider, name="Brick", address="001653FFFFFF")

        assert conn.name == "Brick"
        assert conn.address == "001653FFFFFF"
        assert fake_provider.identity_calls == 0

    def test_clone_copies_identity_not_session(self, fake_provider: FakeProvider) -> None:
        conn = connected(fake_provider, strict=True)
        queries = fake_provider.identity_calls

        twin = conn.clone()

        assert isinstance(twin, WiredConnection)
        assert twin.name == conn.name
        assert twin.address == conn.address
        assert twin.strict is True
        assert twin.grace_ms == 0
        assert twin.state is ConnectionState.DISCONNECTED
        assert twin.connection_attempts == 0
        assert fake_provider.identity_calls == queries


class TestLifecycle:
    """Tests for accept/connect/disconnect."""

    def test_new_connection_is_disconnected(self, fake_provider: FakeProvider) -> None:
        conn = make_connection(fake_provider)

        assert conn.state is ConnectionState.DISCONNECTED
        assert not conn.is_connected
        assert conn.remote_address is None
        assert conn.connection_attempts == 0
        assert conn.session_id is None

    def test_accept_timeout_leaves_disconnected(self, fake_provider: FakeProvider) -> None:
        conn = make_connection(fake_provider)

        assert conn.accept(ACCEPT_TIMEOUT_MS) is False

        assert conn.state is ConnectionState.DISCONNECTED
        assert conn.connection_attempts == 1
        assert fake_provider.waits == [ACCEPT_TIMEOUT_MS]

    def test_accept_establishes_session(self, fake_provider: FakeProvider) -> None:
        session = FakeSession(remote_address="00:16:53:00:00:0B")
        conn = connected(fake_provider, session)

        assert conn.state is ConnectionState.CONNECTED
        assert conn.remote_address == "00:16:53:00:00:0B"
        assert conn.session_id is not None
        assert conn.connection_attempts == 1

    def test_accept_default_timeout(self, fake_provider: FakeProvider, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(const, "BRICKCOMM_CONNECT_TIMEOUT_MS", 1234)
        make_connection(fake_provider).accept()

        assert fake_provider.waits == [1234]

    def test_accept_provider_error_is_failed_attempt(self, fake_provider: FakeProvider) -> None:
        fake_provider.await_incoming = MagicMock(side_effect=OSError("radio off"))  # type: ignore[method-assign]
        conn = make_connection(fake_provider)

        assert conn.accept(ACCEPT_TIMEOUT_MS) is False
        assert conn.state is ConnectionState.DISCONNECTED

    def test_connect_passes_identifier_through(self, fake_provider: FakeProvider) -> None:
        fake_provider.dial_results["usb0"] = FakeSession(remote_address="usb0")
        conn = make_connection(fake_provider)

        assert conn.connect("usb0") is True
        assert fake_provider.dialed == ["usb0"]
        assert conn.remote_address == "usb0"

    def test_attempts_count_every_outcome(self, fake_provider: FakeProvider) -> None:
        fake_provider.dial_results["good"] = FakeSession()
        conn = make_connection(fake_provider)

        conn.connect("missing")
        conn.accept(ACCEPT_TIMEOUT_MS)
        conn.connect("good")
        assert conn.connection_attempts == 3

        conn.reset_connection_attempts()
        assert conn.connection_attempts == 0
        assert conn.is_connected

    def test_connect_while_connected_drops_old_session(self, fake_provider: FakeProvider) -> None:
        first = FakeSession(remote_address="first")
        second = FakeSession(remote_address="second")
        fake_provider.dial_results["second"] = second
        conn = connected(fake_provider, first)

        assert conn.connect("second")

        assert first.close_calls == 1
        assert conn.remote_address == "second"

    def test_failed_reconnect_leaves_disconnected(self, fake_provider: FakeProvider) -> None:
        first = FakeSession()
        conn = connected(fake_provider, first)

        assert conn.connect("nowhere") is False

        assert first.close_calls == 1
        assert conn.state is ConnectionState.DISCONNECTED

    def test_disconnect_closes_streams_and_session(self, fake_provider: FakeProvider) -> None:
        session = FakeSession()
        conn = connected(fake_provider, session)

        conn.disconnect()

        assert session.input_stream.close_calls == 1
        assert session.output_stream.close_calls == 1
        assert session.close_calls == 1
        assert conn.state is ConnectionState.DISCONNECTED
        assert conn.remote_address is None
        assert conn.session_id is None

    def test_disconnect_is_idempotent(self, fake_provider: FakeProvider) -> None:
        session = FakeSession()
        conn = connected(fake_provider, session)

        conn.disconnect()
        conn.disconnect()

        assert session.close_calls == 1

    def test_disconnect_on_fresh_connection_is_noop(self, fake_provider: FakeProvider) -> None:
        conn = make_connection(fake_provider)
        conn.disconnect()
        assert conn.state is ConnectionState.DISCONNECTED

    def test_disconnect_tolerates_close_errors(self, fake_provider: FakeProvider) -> None:
        session = FakeSession()
        session.close = MagicMock(side_effect=OSError("already closed"))  # type: ignore[method-assign]
        conn = connected(fake_provider, session)

        conn.disconnect()

        assert conn.state is ConnectionState.DISCONNECTED

    def test_context_manager_disconnects(self, fake_provider: FakeProvider) -> None:
        session = FakeSession()
        with connected(fake_provider, session) as conn:
            assert conn.is_connected
        assert session.close_calls == 1
        assert not conn.is_connected

    def test_repr_shows_state(self, fake_provider: FakeProvider) -> None:
        conn = connected(fake_provider, FakeSession(remote_address="peer"))
        assert repr(conn) == "WiredConnection(NXT-A, connected -> peer)"


class TestFailedAttempts:
    """Provider and resolver errors end the attempt disconnected."""

    def test_scan_error_is_failed_attempt(self, radio_hub: tuple[LoopbackRadio, LoopbackRadio]) -> None:
        radio_a, _ = radio_hub
        conn = RadioConnection(radio_a, grace_ms=0)

        with patch.object(radio_a, "scan", side_effect=OSError("radio driver failure")):
            assert conn.connect("NXT-B") is False

        assert conn.state is ConnectionState.DISCONNECTED
        assert conn.connection_attempts == 1

    def test_scan_error_in_strict_mode(self, radio_hub: tuple[LoopbackRadio, LoopbackRadio]) -> None:
        radio_a, _ = radio_hub
        conn = RadioConnection(radio_a, grace_ms=0, strict=True)

        with patch.object(radio_a, "known_peers", side_effect=RuntimeError("cache unreadable")):
            err = expect_exception(conn.connect, ConnectFailedError, "NXT-B")

        assert_link_error(err, ConnectFailedError, ErrorKind.CONN, "resolve_error")
        assert isinstance(err.__context__, RuntimeError)
        assert conn.state is ConnectionState.DISCONNECTED

    def test_malformed_tcp_endpoint(self) -> None:
        conn = WiredConnection(TcpTransport(), name="host", address="host", grace_ms=0)

        assert conn.connect("nohost") is False

        assert conn.state is ConnectionState.DISCONNECTED
        assert conn.remote_address is None

    def test_dial_error_keeps_taxonomy_in_strict_mode(self, fake_provider: FakeProvider) -> None:
        fake_provider.dial = MagicMock(side_effect=ValueError("bad endpoint"))  # type: ignore[method-assign]
        conn = make_connection(fake_provider, strict=True)

        err = expect_exception(conn.connect, ConnectFailedError, "usb0")

        assert_link_error(err, ConnectFailedError, ErrorKind.CONN, "dial_error")

    def test_accept_non_os_error(self, fake_provider: FakeProvider) -> None:
        fake_provider.await_incoming = MagicMock(side_effect=RuntimeError("driver crashed"))  # type: ignore[method-assign]
        conn = make_connection(fake_provider)

        assert conn.accept(ACCEPT_TIMEOUT_MS) is False
        assert conn.state is ConnectionState.DISCONNECTED


class TestDisconnectCleanup:
    """Best-effort teardown of streams and session."""

    def test_stream_close_errors_are_swallowed(self, fake_provider: FakeProvider) -> None:
        session = FakeSession()
        session.input_stream = MagicMock()
        session.input_stream.close.side_effect = OSError("input gone")
        session.output_stream = MagicMock()
        session.output_stream.close.side_effect = BrokenPipeError()
        conn = connected(fake_provider, session)

        conn.disconnect()

        session.input_stream.close.assert_called_once()
        session.output_stream.close.assert_called_once()
        assert session.close_calls == 1
        assert conn.state is ConnectionState.DISCONNECTED

    def test_grace_period_between_streams_and_session(self, fake_provider: FakeProvider) -> None:
        session = FakeSession()
        conn = connected(fake_provider, session, grace_ms=80)
        seen: list[tuple[int, int, int]] = []

        def record_sleep(_seconds: float) -> None:
            seen.append((session.input_stream.close_calls, session.output_stream.close_calls, session.close_calls))

        with patch.object(connection_module.time, "sleep", side_effect=record_sleep) as mock_sleep:
            conn.disconnect()

        mock_sleep.assert_called_once_with(0.08)
        # Streams already closed, session not yet
        assert seen == [(1, 1, 0)]
        assert session.close_calls == 1


class TestStrictMode:
    """Tests for raising on failed connect attempts."""

    def test_accept_timeout_raises(self, fake_provider: FakeProvider) -> None:
        conn = make_connection(fake_provider, strict=True)

        err = expect_exception(conn.accept, LinkTimeoutError, ACCEPT_TIMEOUT_MS)

        assert err.kind is ErrorKind.TIMEOUT
        assert err.timeout_ms == ACCEPT_TIMEOUT_MS
        assert conn.state is ConnectionState.DISCONNECTED

    def test_connect_failure_raises(self, fake_provider: FakeProvider) -> None:
        conn = make_connection(fake_provider, strict=True)

        err = expect_exception(conn.connect, ConnectFailedError, "nowhere")

        assert err.reason == "dial_failed"
        assert err.identifier == "nowhere"
        assert err.attempts == 1
        assert conn.connection_attempts == 1

    def test_strict_default_from_environment(
        self, fake_provider: FakeProvider, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(const, "BRICKCOMM_STRICT_CONNECT", True)
        assert make_connection(fake_provider).strict is True


class TestValues:
    """Tests for sending and receiving values."""

    def test_send_writes_and_flushes(self, fake_provider: FakeProvider) -> None:
        session = FakeSession()
        conn = connected(fake_provider, session)

        conn.send_int(42)
        conn.send_string("Hi")

        assert session.written == b"\x00\x00\x00\x2a" + bytes.fromhex("00000002 0048 0069")
        assert session.output_stream.flush_calls == 2

    def test_receive_typed_values(self, fake_provider: FakeProvider) -> None:
        incoming = b"\xc8" + b"\x00\x00\x00\x07" + b"\x00" * 7 + b"\x09" + b"\x00\x00\x00\x01\x00\x41"
        conn = connected(fake_provider, FakeSession(incoming=incoming))

        assert conn.receive_byte() == -56
        assert conn.receive_int() == 7
        assert conn.receive_long() == 9
        assert conn.receive_string() == "A"

    def test_send_when_disconnected_writes_nothing(self, fake_provider: FakeProvider) -> None:
        session = FakeSession()
        conn = connected(fake_provider, session)
        conn.disconnect()

        err = expect_exception(conn.send_int, NotConnectedError, 1)

        assert err.kind is ErrorKind.CONN
        assert session.written == b""

    def test_receive_when_never_connected(self, fake_provider: FakeProvider) -> None:
        conn = make_connection(fake_provider)
        err = expect_exception(conn.receive_long, NotConnectedError)
        assert "receive int64" in str(err)

    def test_invalid_value_writes_nothing(self, fake_provider: FakeProvider) -> None:
        session = FakeSession()
        conn = connected(fake_provider, session)

        with pytest.raises(ValueError):
            conn.send_byte(300)

        assert session.written == b""
        assert conn.is_connected

    def test_premature_end_of_stream(self, fake_provider: FakeProvider) -> None:
        conn = connected(fake_provider, FakeSession(incoming=b"\x00\x00"))

        err = expect_exception(conn.receive_int, ReceiveError)

        assert isinstance(err, WireDecodeError)
        assert err.reason == "eof"
        # I/O failures never change state
        assert conn.is_connected

    def test_write_failure_is_send_error(self, fake_provider: FakeProvider) -> None:
        session = FakeSession()
        session.output_stream = MagicMock()
        session.output_stream.write.side_effect = BrokenPipeError()
        conn = connected(fake_provider, session)

        err = expect_exception(conn.send, SendError, PrimitiveKind.INT64, 5)

        assert err.kind is ErrorKind.SEND
        assert err.reason == "BrokenPipeError"
        assert err.value_kind == "int64"
        assert conn.is_connected

    def test_read_failure_is_receive_error(self, fake_provider: FakeProvider) -> None:
        session = FakeSession()
        session.input_stream = MagicMock()
        session.input_stream.read.side_effect = ConnectionResetError()
        conn = connected(fake_provider, session)

        err = expect_exception(conn.receive, ReceiveError, PrimitiveKind.TEXT)

        assert err.kind is ErrorKind.RECV
        assert err.value_kind == "text"

    def test_read_timeout_is_link_timeout(self, fake_provider: FakeProvider) -> None:
        session = FakeSession()
        session.input_stream = MagicMock()
        session.input_stream.read.side_effect = TimeoutError()
        conn = connected(fake_provider, session)

        err = expect_exception(conn.receive_int, LinkTimeoutError)

        assert err.reason == "receive_int32"
