"""Link protocol package - primitive value codec and error taxonomy.

Public API:
- WireCodec: byte/int32/int64/text encoder and stream decoder
- PrimitiveKind: the primitive kinds carried on the wire
- LinkError hierarchy and ErrorKind (see brickcomm.protocol.exceptions)
"""

from brickcomm.protocol.codec import PrimitiveKind, WireCodec
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

__all__ = [
    "ConnectFailedError",
    "ErrorKind",
    "LinkError",
    "LinkTimeoutError",
    "NotConnectedError",
    "PrimitiveKind",
    "ReceiveError",
    "SendError",
    "WireCodec",
    "WireDecodeError",
]
