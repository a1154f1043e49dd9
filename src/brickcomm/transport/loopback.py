"""In-process loopback transports.

A LoopbackHub plays the role of the shared medium: every provider registers
with it and gets an inbox. Dialing creates a ``socket.socketpair()`` and
drops one end into the target's inbox, so a session can be established even
before the target starts waiting, and the bytes exchanged are real stream
bytes. Useful for tests, demos and running two peers in one process.
"""

from __future__ import annotations

import queue
import socket
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

from brickcomm.const import PEER_DEVICE_CLASS
from brickcomm.logging_abstraction import get_logger

from .provider import RadioTransportProvider, TransportProvider
from .session import SocketSession
from .types import LocalIdentity, Peer

logger = get_logger(__name__)


@dataclass
class _HubEntry:
    peer: Peer
    inbox: queue.Queue[tuple[socket.socket, str]] = field(default_factory=queue.Queue)


class LoopbackHub:
    """Shared medium connecting loopback providers by address. Thread-safe."""

    def __init__(self) -> None:
        self._entries: dict[str, _HubEntry] = {}
        self._lock = threading.Lock()

    def register(self, peer: Peer) -> queue.Queue[tuple[socket.socket, str]]:
        """Attach a device to the medium and return its inbox."""
        with self._lock:
            if peer.address in self._entries:
                error_msg = f"address already registered: {peer.address}"
                raise ValueError(error_msg)
            entry = _HubEntry(peer)
            self._entries[peer.address] = entry
            return entry.inbox

    def unregister(self, address: str) -> None:
        """Detach a device, closing sessions still waiting in its inbox."""
        with self._lock:
            entry = self._entries.pop(address, None)
        if entry is None:
            return
        while True:
            try:
                sock, remote = entry.inbox.get_nowait()
            except queue.Empty:
                break
            logger.debug("Dropping unaccepted session from %s", remote, extra={"address": address})
            sock.close()

    def peers(self) -> list[Peer]:
        """All devices currently attached, in registration order."""
        with self._lock:
            return [entry.peer for entry in self._entries.values()]

    def deliver(self, from_address: str, to_address: str) -> socket.socket | None:
        """Open a stream pair to ``to_address``; returns the caller's end."""
        with self._lock:
            entry = self._entries.get(to_address)
            if entry is None or to_address == from_address:
                return None
            local_end, remote_end = socket.socketpair()
            entry.inbox.put((remote_end, from_address))
        return local_end


class LoopbackWire(TransportProvider):
    """Wired loopback provider.

    ``dial("")`` connects to the single other device on the hub, the way a
    cable has one counterpart; any other endpoint is taken as its address.
    """

    kind = "wire"

    def __init__(self, hub: LoopbackHub, name: str, address: str):
        self.hub = hub
        self._identity = LocalIdentity(name, address)
        self._inbox = hub.register(Peer(address, name))

    def local_identity(self) -> LocalIdentity:
        return self._identity

    def await_incoming(self, timeout_ms: int) -> SocketSession | None:
        try:
            sock, remote = self._inbox.get(timeout=max(timeout_ms, 0) / 1000.0)
        except queue.Empty:
            return None
        return SocketSession(sock, remote)

    def _counterpart(self, endpoint: str) -> str | None:
        if endpoint:
            return endpoint
        others = [p.address for p in self.hub.peers() if p.address != self._identity.address]
        if len(others) != 1:
            logger.debug("No unique counterpart on wire", extra={"candidates": len(others)})
            return None
        return others[0]

    def dial(self, endpoint: str) -> SocketSession | None:
        target = self._counterpart(endpoint)
        if target is None:
            return None
        sock = self.hub.deliver(self._identity.address, target)
        if sock is None:
            return None
        return SocketSession(sock, target)

    def close(self) -> None:
        """Detach from the hub."""
        self.hub.unregister(self._identity.address)


class LoopbackRadio(RadioTransportProvider):
    """Radio loopback provider with a pairing cache and device-class scan."""

    kind = "radio"

    def __init__(
        self,
        hub: LoopbackHub,
        name: str,
        address: str,
        device_class: int = PEER_DEVICE_CLASS,
        known: Iterable[Peer] = (),
    ):
        self.hub = hub
        self._identity = LocalIdentity(name, address)
        self._inbox = hub.register(Peer(address, name, device_class))
        self._known: list[Peer] = list(known)
        self.scans = 0

    def local_identity(self) -> LocalIdentity:
        return self._identity

    def await_incoming(self, timeout_ms: int) -> SocketSession | None:
        try:
            sock, remote = self._inbox.get(timeout=max(timeout_ms, 0) / 1000.0)
        except queue.Empty:
            return None
        return SocketSession(sock, remote)

    def dial(self, endpoint: str) -> SocketSession | None:
        sock = self.hub.deliver(self._identity.address, endpoint)
        if sock is None:
            return None
        return SocketSession(sock, endpoint)

    def known_peers(self) -> list[Peer]:
        return list(self._known)

    def scan(self, max_results: int, duration: int, device_class: int) -> list[Peer]:
        self.scans += 1
        found = [
            peer
            for peer in self.hub.peers()
            if peer.address != self._identity.address and peer.device_class == device_class
        ]
        logger.debug(
            "Loopback inquiry found %d device(s)",
            len(found),
            extra={"duration": duration, "max_results": max_results},
        )
        return found[:max_results]

    def remember(self, peer: Peer) -> None:
        if all(known.address != peer.address for known in self._known):
            self._known.append(peer)

    def close(self) -> None:
        """Detach from the hub."""
        self.hub.unregister(self._identity.address)
