"""Core types shared by connections and transport providers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Protocol, runtime_checkable


class ConnectionState(Enum):
    """Connection lifecycle states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class LocalIdentity:
    """This device's transport-level identity.

    Attributes:
        name: Friendly device name
        address: Stable transport address
    """

    name: str
    address: str


@dataclass(frozen=True)
class Peer:
    """A remote device reachable over a transport.

    Attributes:
        address: Transport address (compared literally during discovery)
        name: Friendly (display) name, empty if unknown
        device_class: Advertised class of device, 0 if unknown
    """

    address: str
    name: str = ""
    device_class: int = 0

    def matches(self, identifier: str, *, by_address: bool) -> bool:
        """Exact match against an address or a friendly name."""
        if by_address:
            return self.address == identifier
        return self.name == identifier


@runtime_checkable
class SessionHandle(Protocol):
    """An established, bidirectional byte-stream pair bound to one peer."""

    @property
    def remote_address(self) -> str:
        """Address of the connected peer."""
        ...

    @property
    def input_stream(self) -> BinaryIO:
        """Blocking binary stream for reading."""
        ...

    @property
    def output_stream(self) -> BinaryIO:
        """Binary stream for writing; must support flush()."""
        ...

    def close(self) -> None:
        """Close the underlying transport handle."""
        ...
