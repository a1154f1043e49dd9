"""brickcomm - typed value exchange between two devices over a radio or wired link.

Public API:
- RadioConnection, WiredConnection: connection bindings sharing one state machine
- Connection, ConnectionState: the generic connection core
- WireCodec, PrimitiveKind: byte/int32/int64/text wire encoding
- LinkError and subclasses, ErrorKind: the closed error taxonomy
- TransportProvider, RadioTransportProvider, SessionHandle, Peer: provider contract
"""

__version__ = "0.3.0"

from brickcomm.protocol import PrimitiveKind, WireCodec
from brickcomm.protocol.exceptions import (
    ConnectFailedError,
    ErrorKind,
    LinkError,
    LinkTimeoutError,
    NotConnectedError,
    ReceiveError,
    SendError,
    WireDecodeError,
)
from brickcomm.transport import (
    Connection,
    ConnectionState,
    LocalIdentity,
    Peer,
    PeerResolver,
    RadioConnection,
    RadioTransportProvider,
    SessionHandle,
    TransportProvider,
    WiredConnection,
)

__all__ = [
    "ConnectFailedError",
    "Connection",
    "ConnectionState",
    "ErrorKind",
    "LinkError",
    "LinkTimeoutError",
    "LocalIdentity",
    "NotConnectedError",
    "Peer",
    "PeerResolver",
    "PrimitiveKind",
    "RadioConnection",
    "RadioTransportProvider",
    "ReceiveError",
    "SendError",
    "SessionHandle",
    "TransportProvider",
    "WireCodec",
    "WireDecodeError",
    "WiredConnection",
    "__version__",
]
