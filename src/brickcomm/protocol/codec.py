"""Wire codec for primitive link values.

Wire format (no envelope, no type tag, no checksum):

- byte:  1 byte, verbatim
- int32: 4 bytes, big-endian two's complement
- int64: 8 bytes, big-endian two's complement
- text:  4-byte big-endian count of UTF-16 code units, followed by that many
         2-byte big-endian code units

Both peers must agree out-of-band on the sequence and kinds of values.
"""

from __future__ import annotations

import struct
from enum import Enum
from io import BytesIO
from typing import BinaryIO, Final

from brickcomm.logging_abstraction import get_logger

from .exceptions import WireDecodeError

logger = get_logger(__name__)

BYTE_STRUCT: Final = struct.Struct(">b")
INT32_STRUCT: Final = struct.Struct(">i")
INT64_STRUCT: Final = struct.Struct(">q")
TEXT_LENGTH_STRUCT: Final = INT32_STRUCT
CODE_UNIT_BYTES: Final = 2
TEXT_ENCODING: Final = "utf-16-be"

BYTE_MIN, BYTE_MAX = -128, 255  # signed and unsigned spellings both accepted
INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1


class PrimitiveKind(Enum):
    """Primitive value kinds carried on the wire."""

    BYTE = "byte"
    INT32 = "int32"
    INT64 = "int64"
    TEXT = "text"

    @property
    def fixed_width(self) -> int | None:
        """Encoded size in bytes, or None for variable-width text."""
        return _FIXED_WIDTHS.get(self)


_FIXED_WIDTHS: Final = {
    PrimitiveKind.BYTE: BYTE_STRUCT.size,
    PrimitiveKind.INT32: INT32_STRUCT.size,
    PrimitiveKind.INT64: INT64_STRUCT.size,
}


def _check_int(value: object, low: int, high: int, kind: PrimitiveKind) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        error_msg = f"{kind.value} value must be int, got {type(value).__name__}"
        raise TypeError(error_msg)
    if not low <= value <= high:
        error_msg = f"{kind.value} value out of range [{low}, {high}]: {value}"
        raise ValueError(error_msg)
    return value


def read_exact(stream: BinaryIO, size: int, kind: PrimitiveKind) -> bytes:
    """Read exactly ``size`` bytes from a blocking stream.

    Raises:
        WireDecodeError: If the stream ends first (reason "eof")
        OSError: Propagated from the stream
    """
    buf = bytearray()
    while len(buf) < size:
        chunk = stream.read(size - len(buf))
        if not chunk:
            raise WireDecodeError("eof", kind.value, bytes(buf))
        buf.extend(chunk)
    return bytes(buf)


class WireCodec:
    """Encoder/decoder for primitive link values.

    All methods are stateless. Encoders validate the value and return the
    complete wire bytes so that the caller can write them in one call;
    decoders pull exactly the bytes they need from a blocking binary stream.
    """

    @staticmethod
    def encode_byte(value: int) -> bytes:
        """Encode one byte. Accepts -128..255; 200 and -56 encode identically."""
        value = _check_int(value, BYTE_MIN, BYTE_MAX, PrimitiveKind.BYTE)
        return bytes((value & 0xFF,))

    @staticmethod
    def encode_int32(value: int) -> bytes:
        """Encode a signed 32-bit integer, big-endian."""
        return INT32_STRUCT.pack(_check_int(value, INT32_MIN, INT32_MAX, PrimitiveKind.INT32))

    @staticmethod
    def encode_int64(value: int) -> bytes:
        """Encode a signed 64-bit integer, big-endian."""
        return INT64_STRUCT.pack(_check_int(value, INT64_MIN, INT64_MAX, PrimitiveKind.INT64))

    @staticmethod
    def encode_text(value: str) -> bytes:
        """Encode text as a code-unit count followed by UTF-16BE code units.

        The count is the number of UTF-16 code units, not characters or bytes:
        a character outside the BMP is a surrogate pair and counts as two.

        Example:
            >>> WireCodec.encode_text("Hi").hex(" ")
            '00 00 00 02 00 48 00 69'
        """
        if not isinstance(value, str):
            error_msg = f"text value must be str, got {type(value).__name__}"
            raise TypeError(error_msg)
        # surrogatepass keeps lone surrogates, which peers may legitimately send
        units = value.encode(TEXT_ENCODING, "surrogatepass")
        count = len(units) // CODE_UNIT_BYTES
        if count > INT32_MAX:
            error_msg = f"text too long for wire length field: {count} code units"
            raise ValueError(error_msg)
        return TEXT_LENGTH_STRUCT.pack(count) + units

    @staticmethod
    def read_byte(stream: BinaryIO) -> int:
        """Read one byte, returned signed (-128..127)."""
        return BYTE_STRUCT.unpack(read_exact(stream, BYTE_STRUCT.size, PrimitiveKind.BYTE))[0]

    @staticmethod
    def read_int32(stream: BinaryIO) -> int:
        """Read a big-endian signed 32-bit integer."""
        return INT32_STRUCT.unpack(read_exact(stream, INT32_STRUCT.size, PrimitiveKind.INT32))[0]

    @staticmethod
    def read_int64(stream: BinaryIO) -> int:
        """Read a big-endian signed 64-bit integer."""
        return INT64_STRUCT.unpack(read_exact(stream, INT64_STRUCT.size, PrimitiveKind.INT64))[0]

    @staticmethod
    def read_text(stream: BinaryIO) -> str:
        """Read a length-prefixed UTF-16BE text value.

        Raises:
            WireDecodeError: On a negative length field or premature end of stream
        """
        header = read_exact(stream, TEXT_LENGTH_STRUCT.size, PrimitiveKind.TEXT)
        (count,) = TEXT_LENGTH_STRUCT.unpack(header)
        if count < 0:
            raise WireDecodeError("negative_length", PrimitiveKind.TEXT.value, header)

        logger.debug("Reading text of %d code units", count, extra={"code_units": count})
        units = read_exact(stream, count * CODE_UNIT_BYTES, PrimitiveKind.TEXT)
        return units.decode(TEXT_ENCODING, "surrogatepass")

    @staticmethod
    def encode(kind: PrimitiveKind, value: int | str) -> bytes:
        """Encode a value of the given kind."""
        if kind is PrimitiveKind.TEXT:
            return WireCodec.encode_text(value)  # type: ignore[arg-type]
        return _INT_ENCODERS[kind](value)  # type: ignore[arg-type]

    @staticmethod
    def read(kind: PrimitiveKind, stream: BinaryIO) -> int | str:
        """Read one value of the given kind from a stream."""
        return _READERS[kind](stream)

    @staticmethod
    def decode(kind: PrimitiveKind, data: bytes) -> int | str:
        """Decode one value of the given kind from a complete byte string.

        Raises:
            WireDecodeError: If data is truncated or has trailing bytes
        """
        stream = BytesIO(data)
        value = WireCodec.read(kind, stream)
        if stream.tell() != len(data):
            raise WireDecodeError("trailing_bytes", kind.value, data)
        return value


_INT_ENCODERS: Final = {
    PrimitiveKind.BYTE: WireCodec.encode_byte,
    PrimitiveKind.INT32: WireCodec.encode_int32,
    PrimitiveKind.INT64: WireCodec.encode_int64,
}

_READERS: Final = {
    PrimitiveKind.BYTE: WireCodec.read_byte,
    PrimitiveKind.INT32: WireCodec.read_int32,
    PrimitiveKind.INT64: WireCodec.read_int64,
    PrimitiveKind.TEXT: WireCodec.read_text,
}
