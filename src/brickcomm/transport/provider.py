"""Transport provider contract.

A provider wraps the driver that performs actual radio or wire I/O. One
provider instance is shared by every connection bound to that transport;
connections only ever talk to the driver through these methods.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Final

from .types import LocalIdentity, Peer, SessionHandle

# 12 hex digits, optionally grouped in colon-separated octets ("00:16:53:0A:1B:2C")
ADDRESS_PATTERN: Final = re.compile(r"^(?:[0-9A-Fa-f]{12}|[0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2})+)$")


class TransportProvider(ABC):
    """Driver-side operations every transport supports."""

    #: Short transport label used in logs and metrics
    kind: str = "transport"

    @abstractmethod
    def local_identity(self) -> LocalIdentity:
        """Return this device's name and address. May be slow; call once."""
        raise NotImplementedError

    @abstractmethod
    def await_incoming(self, timeout_ms: int) -> SessionHandle | None:
        """Wait up to ``timeout_ms`` for an inbound session; None on timeout."""
        raise NotImplementedError

    @abstractmethod
    def dial(self, endpoint: str) -> SessionHandle | None:
        """Open a session to a resolved endpoint; None on failure."""
        raise NotImplementedError


class RadioTransportProvider(TransportProvider):
    """Provider for a radio transport with pairing and active discovery."""

    kind = "radio"

    def is_address(self, identifier: str) -> bool:
        """Classify an identifier as address-form (True) or name-form (False)."""
        return ADDRESS_PATTERN.match(identifier) is not None

    @abstractmethod
    def known_peers(self) -> Iterable[Peer]:
        """Previously paired peers, in no particular order."""
        raise NotImplementedError

    @abstractmethod
    def scan(self, max_results: int, duration: int, device_class: int) -> Iterable[Peer]:
        """Actively inquire for peers advertising ``device_class``.

        Args:
            max_results: Stop after this many devices
            duration: Inquiry length in units of 1.28 seconds
            device_class: Class-of-device filter
        """
        raise NotImplementedError

    @abstractmethod
    def remember(self, peer: Peer) -> None:
        """Add a peer to the pairing cache."""
        raise NotImplementedError
