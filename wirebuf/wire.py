"""Wire format primitives: varints, field keys, buffers and field skipping."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, TypeVar

from .errors import DecodeError

MIN_TAG = 1
MAX_TAG = (1 << 29) - 1
RECURSION_LIMIT = 100

_U32_MAX = (1 << 32) - 1
_U64_MAX = (1 << 64) - 1
_MAX_VARINT_SHIFT = 70  # ten groups of seven bits

T = TypeVar("T")


class WireType(enum.IntEnum):
    """The wire type carried in the low three bits of a field key."""

    VARINT = 0
    SIXTY_FOUR_BIT = 1
    LENGTH_DELIMITED = 2
    START_GROUP = 3
    END_GROUP = 4
    THIRTY_TWO_BIT = 5


def _wire_type_from(value: int) -> WireType:
    try:
        return WireType(value)
    except ValueError:
        raise DecodeError(f"invalid wire type value: {value}") from None


class Reader:
    """A cursor over a read-only block of bytes."""

    __slots__ = ("_data", "_pos")

    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self._data = memoryview(data)
        self._pos = 0

    def remaining(self) -> int:
        """Number of bytes not yet consumed."""
        return len(self._data) - self._pos

    def has_remaining(self) -> bool:
        return self._pos < len(self._data)

    def _require(self, n: int) -> None:
        if n < 0:
            raise ValueError(f"negative length: {n}")
        if n > self.remaining():
            raise DecodeError("buffer underflow")

    def read(self, n: int) -> bytes:
        """Consume and return the next ``n`` bytes."""
        self._require(n)
        chunk = bytes(self._data[self._pos : self._pos + n])
        self._pos += n
        return chunk

    def read_byte(self) -> int:
        """Consume and return the next byte."""
        self._require(1)
        byte = self._data[self._pos]
        self._pos += 1
        return byte

    def advance(self, n: int) -> None:
        """Skip the next ``n`` bytes."""
        self._require(n)
        self._pos += n


@dataclass(frozen=True)
class DecodeContext:
    """Decoding state passed down through nested decodes.

    Every nested level gets a context from ``enter_recursion``; the
    caller keeps using its own context at its level.
    """

    recurse_count: int = RECURSION_LIMIT

    def enter_recursion(self) -> DecodeContext:
        """Return the context for one more level of nesting."""
        return DecodeContext(self.recurse_count - 1)

    def check_limit(self) -> None:
        """Raise ``DecodeError`` if no further nesting is allowed."""
        if self.recurse_count <= 0:
            raise DecodeError("recursion limit reached")


def encode_varint(value: int, buf: bytearray) -> None:
    """Append ``value`` (an unsigned 64-bit integer) to ``buf`` as a LEB128 varint."""
    if not 0 <= value <= _U64_MAX:
        raise ValueError(f"varint value out of range: {value}")
    while value >= 0x80:
        buf.append((value & 0x7F) | 0x80)
        value >>= 7
    buf.append(value)


def decode_varint(reader: Reader) -> int:
    """Read a LEB128 varint of at most ten bytes from ``reader``."""
    value = 0
    for shift in range(0, _MAX_VARINT_SHIFT, 7):
        if not reader.has_remaining():
            raise DecodeError("invalid varint")
        byte = reader.read_byte()
        value |= (byte & 0x7F) << shift
        if byte < 0x80:
            return value & _U64_MAX
    raise DecodeError("invalid varint")


def encoded_len_varint(value: int) -> int:
    """Length in bytes, from 1 to 10, of ``value`` encoded as a varint."""
    if not 0 <= value <= _U64_MAX:
        raise ValueError(f"varint value out of range: {value}")
    return max(1, (value.bit_length() + 6) // 7)


def encode_key(tag: int, wire_type: WireType, buf: bytearray) -> None:
    """Append a field key made of ``tag`` and ``wire_type``."""
    if not MIN_TAG <= tag <= MAX_TAG:
        raise ValueError(f"field tag out of range: {tag}")
    encode_varint((tag << 3) | int(wire_type), buf)


def decode_key(reader: Reader) -> tuple[int, WireType]:
    """Read a field key and return ``(tag, wire_type)``."""
    key = decode_varint(reader)
    if key > _U32_MAX:
        raise DecodeError(f"invalid key value: {key}")
    wire_type = _wire_type_from(key & 0x07)
    tag = key >> 3
    if tag < MIN_TAG:
        raise DecodeError("invalid tag value: 0")
    return tag, wire_type


def key_len(tag: int) -> int:
    """Width in bytes, from 1 to 5, of a field key with ``tag``."""
    return encoded_len_varint((tag << 3) & _U32_MAX)


def check_wire_type(expected: WireType, actual: WireType) -> None:
    """Raise ``DecodeError`` unless ``actual`` equals ``expected``."""
    if expected != actual:
        raise DecodeError(
            f"invalid wire type: {WireType(actual).name} "
            f"(expected {WireType(expected).name})"
        )


def merge_loop(
    value: T,
    reader: Reader,
    ctx: DecodeContext,
    merge: Callable[[T, Reader, DecodeContext], None],
) -> None:
    """Read a length prefix, then call ``merge`` until that many bytes are consumed."""
    length = decode_varint(reader)
    remaining = reader.remaining()
    if length > remaining:
        raise DecodeError("buffer underflow")
    limit = remaining - length
    while reader.remaining() > limit:
        merge(value, reader, ctx)
    if reader.remaining() != limit:
        raise DecodeError("delimited length exceeded")


def skip_field(
    wire_type: WireType, tag: int, reader: Reader, ctx: DecodeContext
) -> None:
    """Consume the payload of a field whose key has already been read."""
    ctx.check_limit()
    if wire_type == WireType.VARINT:
        decode_varint(reader)
        length = 0
    elif wire_type == WireType.THIRTY_TWO_BIT:
        length = 4
    elif wire_type == WireType.SIXTY_FOUR_BIT:
        length = 8
    elif wire_type == WireType.LENGTH_DELIMITED:
        length = decode_varint(reader)
    elif wire_type == WireType.START_GROUP:
        while True:
            inner_tag, inner_wire_type = decode_key(reader)
            if inner_wire_type == WireType.END_GROUP:
                if inner_tag != tag:
                    raise DecodeError("unexpected end group tag")
                break
            skip_field(inner_wire_type, inner_tag, reader, ctx.enter_recursion())
        length = 0
    else:
        raise DecodeError("unexpected end group tag")

    if length > reader.remaining():
        raise DecodeError("buffer underflow")
    reader.advance(length)