"""Transport package - connection state machine, bindings and providers.

Public API:
- Connection: generic connection core (lifecycle, attempt counter, value dispatch)
- RadioConnection, WiredConnection: the two bindings
- PeerResolver: pairing-cache-then-scan discovery for radio transports
- TransportProvider, RadioTransportProvider: driver contract
- SessionHandle, LocalIdentity, Peer, ConnectionState: shared types
"""

from brickcomm.transport.connection import Connection
from brickcomm.transport.discovery import PeerResolver
from brickcomm.transport.provider import RadioTransportProvider, TransportProvider
from brickcomm.transport.radio import RadioConnection
from brickcomm.transport.types import ConnectionState, LocalIdentity, Peer, SessionHandle
from brickcomm.transport.wired import WiredConnection

__all__ = [
    "Connection",
    "ConnectionState",
    "LocalIdentity",
    "Peer",
    "PeerResolver",
    "RadioConnection",
    "RadioTransportProvider",
    "SessionHandle",
    "TransportProvider",
    "WiredConnection",
]
