"""Codecs for the scalar field types: varints, fixed-width numbers, strings and bytes.

Every codec encodes a field (key and payload) into a ``bytearray`` and
decodes a field payload from a ``Reader`` once its key has been read.
``merge`` returns the decoded value; the ``value`` passed in is the field's
current value, which a scalar field simply replaces.
"""

from __future__ import annotations

import operator
import struct
from abc import ABC, abstractmethod
from typing import Any, MutableSequence, Sequence

from .errors import DecodeError
from .wire import (
    DecodeContext,
    Reader,
    WireType,
    check_wire_type,
    decode_varint,
    encode_key,
    encode_varint,
    encoded_len_varint,
    key_len,
    merge_loop,
)

_U64_MASK = (1 << 64) - 1


def _read_delimited(reader: Reader) -> bytes:
    length = decode_varint(reader)
    if length > reader.remaining():
        raise DecodeError("buffer underflow")
    return reader.read(length)


class ScalarCodec(ABC):
    """Encoding functions shared by every scalar field type."""

    def __init__(self, name: str, wire_type: WireType, default: Any) -> None:
        self.name = name
        self.wire_type = wire_type
        self.default = default

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    @abstractmethod
    def encode(self, tag: int, value: Any, buf: bytearray) -> None:
        """Append the field ``tag`` holding ``value`` to ``buf``."""

    @abstractmethod
    def merge(
        self, wire_type: WireType, value: Any, reader: Reader, ctx: DecodeContext
    ) -> Any:
        """Decode one field payload and return the field's new value."""

    @abstractmethod
    def encoded_len(self, tag: int, value: Any) -> int:
        """Length in bytes of the field ``tag`` holding ``value``."""

    def encode_repeated(self, tag: int, values: Sequence[Any], buf: bytearray) -> None:
        """Append one field per value, each with its own key."""
        for value in values:
            self.encode(tag, value, buf)

    def merge_repeated(
        self,
        wire_type: WireType,
        values: MutableSequence[Any],
        reader: Reader,
        ctx: DecodeContext,
    ) -> None:
        """Decode one element of a repeated field and append it to ``values``."""
        check_wire_type(self.wire_type, wire_type)
        values.append(self.merge(wire_type, self.default, reader, ctx))

    def encoded_len_repeated(self, tag: int, values: Sequence[Any]) -> int:
        """Length in bytes of ``values`` encoded by ``encode_repeated``."""
        return sum(self.encoded_len(tag, value) for value in values)


class NumericCodec(ScalarCodec):
    """A numeric codec, which may also use the packed repeated encoding."""

    @abstractmethod
    def _payload_len(self, value: Any) -> int:
        """Length of the encoded payload of ``value``."""

    @abstractmethod
    def _write(self, value: Any, buf: bytearray) -> None:
        """Append the payload of ``value`` to ``buf``."""

    @abstractmethod
    def _read(self, reader: Reader) -> Any:
        """Read one payload from ``reader``."""

    def encode(self, tag: int, value: Any, buf: bytearray) -> None:
        payload = bytearray()
        self._write(value, payload)
        encode_key(tag, self.wire_type, buf)
        buf += payload

    def merge(
        self, wire_type: WireType, value: Any, reader: Reader, ctx: DecodeContext
    ) -> Any:
        check_wire_type(self.wire_type, wire_type)
        return self._read(reader)

    def encoded_len(self, tag: int, value: Any) -> int:
        return key_len(tag) + self._payload_len(value)

    def encode_packed(self, tag: int, values: Sequence[Any], buf: bytearray) -> None:
        """Append all ``values`` as one length-delimited field; nothing if empty."""
        if not values:
            return
        payload = bytearray()
        for value in values:
            self._write(value, payload)
        encode_key(tag, WireType.LENGTH_DELIMITED, buf)
        encode_varint(len(payload), buf)
        buf += payload

    def encoded_len_packed(self, tag: int, values: Sequence[Any]) -> int:
        """Length in bytes of ``values`` encoded by ``encode_packed``."""
        if not values:
            return 0
        length = sum(self._payload_len(value) for value in values)
        return key_len(tag) + encoded_len_varint(length) + length

    def merge_repeated(
        self,
        wire_type: WireType,
        values: MutableSequence[Any],
        reader: Reader,
        ctx: DecodeContext,
    ) -> None:
        """Decode a packed run or a single element and append to ``values``."""
        if wire_type == WireType.LENGTH_DELIMITED:
            merge_loop(values, reader, ctx, self._merge_packed_item)
        else:
            check_wire_type(self.wire_type, wire_type)
            values.append(self.merge(wire_type, self.default, reader, ctx))

    def _merge_packed_item(
        self, values: MutableSequence[Any], reader: Reader, ctx: DecodeContext
    ) -> None:
        values.append(self.merge(self.wire_type, self.default, reader, ctx))


class VarintCodec(NumericCodec):
    """An integer carried as a varint, optionally signed or zigzag encoded."""

    def __init__(
        self, name: str, bits: int, *, signed: bool = False, zigzag: bool = False
    ) -> None:
        super().__init__(name, WireType.VARINT, 0)
        self.bits = bits
        self.signed = signed or zigzag
        self.zigzag = zigzag
        self._mask = (1 << bits) - 1
        if self.signed:
            self._min = -(1 << (bits - 1))
            self._max = (1 << (bits - 1)) - 1
        else:
            self._min = 0
            self._max = self._mask

    def to_wire(self, value: int) -> int:
        """Map ``value`` to the unsigned 64-bit integer written on the wire."""
        value = operator.index(value)
        if not self._min <= value <= self._max:
            raise ValueError(f"{self.name} value out of range: {value}")
        if self.zigzag:
            return ((value << 1) ^ (value >> (self.bits - 1))) & self._mask
        return value & _U64_MASK

    def from_wire(self, raw: int) -> int:
        """Map an unsigned 64-bit integer read from the wire back to a value."""
        raw &= self._mask
        if self.zigzag:
            return (raw >> 1) ^ -(raw & 1)
        if self.signed and raw > self._max:
            return raw - (1 << self.bits)
        return raw

    def _payload_len(self, value: Any) -> int:
        return encoded_len_varint(self.to_wire(value))

    def _write(self, value: Any, buf: bytearray) -> None:
        encode_varint(self.to_wire(value), buf)

    def _read(self, reader: Reader) -> Any:
        return self.from_wire(decode_varint(reader))


class _BoolCodec(VarintCodec):
    def __init__(self) -> None:
        super().__init__("bool", 64)
        self.default = False

    def to_wire(self, value: Any) -> int:
        return 1 if value else 0

    def from_wire(self, raw: int) -> bool:
        return raw != 0


class FixedCodec(NumericCodec):
    """A little-endian number of fixed width, described by a ``struct`` format."""

    def __init__(
        self, name: str, fmt: str, wire_type: WireType, default: Any = 0
    ) -> None:
        super().__init__(name, wire_type, default)
        self._struct = struct.Struct(fmt)
        self.width = self._struct.size

    def _payload_len(self, value: Any) -> int:
        return self.width

    def _write(self, value: Any, buf: bytearray) -> None:
        try:
            buf += self._struct.pack(value)
        except (struct.error, OverflowError) as exc:
            raise ValueError(f"{self.name} value out of range: {value!r}") from exc

    def _read(self, reader: Reader) -> Any:
        if reader.remaining() < self.width:
            raise DecodeError("buffer underflow")
        return self._struct.unpack(reader.read(self.width))[0]


class StringCodec(ScalarCodec):
    """A UTF-8 string carried as a length-delimited field."""

    def __init__(self) -> None:
        super().__init__("string", WireType.LENGTH_DELIMITED, "")

    def encode(self, tag: int, value: str, buf: bytearray) -> None:
        data = value.encode("utf-8")
        encode_key(tag, WireType.LENGTH_DELIMITED, buf)
        encode_varint(len(data), buf)
        buf += data

    def merge(
        self, wire_type: WireType, value: Any, reader: Reader, ctx: DecodeContext
    ) -> str:
        check_wire_type(WireType.LENGTH_DELIMITED, wire_type)
        data = _read_delimited(reader)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            raise DecodeError(
                "invalid string value: data is not UTF-8 encoded"
            ) from None

    def encoded_len(self, tag: int, value: str) -> int:
        length = len(value.encode("utf-8"))
        return key_len(tag) + encoded_len_varint(length) + length


class BytesCodec(ScalarCodec):
    """Raw bytes carried as a length-delimited field."""

    def __init__(self) -> None:
        super().__init__("bytes", WireType.LENGTH_DELIMITED, b"")

    def encode(self, tag: int, value: Any, buf: bytearray) -> None:
        data = bytes(value)
        encode_key(tag, WireType.LENGTH_DELIMITED, buf)
        encode_varint(len(data), buf)
        buf += data

    def merge(
        self, wire_type: WireType, value: Any, reader: Reader, ctx: DecodeContext
    ) -> bytes:
        check_wire_type(WireType.LENGTH_DELIMITED, wire_type)
        return _read_delimited(reader)

    def encoded_len(self, tag: int, value: Any) -> int:
        length = len(value)
        return key_len(tag) + encoded_len_varint(length) + length


bool_ = _BoolCodec()
int32 = VarintCodec("int32", 32, signed=True)
int64 = VarintCodec("int64", 64, signed=True)
uint32 = VarintCodec("uint32", 32)
uint64 = VarintCodec("uint64", 64)
sint32 = VarintCodec("sint32", 32, zigzag=True)
sint64 = VarintCodec("sint64", 64, zigzag=True)

float_ = FixedCodec("float", "<f", WireType.THIRTY_TWO_BIT, 0.0)
double = FixedCodec("double", "<d", WireType.SIXTY_FOUR_BIT, 0.0)
fixed32 = FixedCodec("fixed32", "<I", WireType.THIRTY_TWO_BIT)
fixed64 = FixedCodec("fixed64", "<Q", WireType.SIXTY_FOUR_BIT)
sfixed32 = FixedCodec("sfixed32", "<i", WireType.THIRTY_TWO_BIT)
sfixed64 = FixedCodec("sfixed64", "<q", WireType.SIXTY_FOUR_BIT)

string = StringCodec()
bytes_ = BytesCodec()