"""Codecs for composite fields: nested messages, groups and maps.

A message here is any object with ``encode_raw(buf)``, ``encoded_len()``
and ``merge_field(tag, wire_type, reader, ctx)``. Messages are merged in
place. Map entries are merged into a mutable mapping.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, MutableMapping, MutableSequence, Protocol, Sequence

from .errors import DecodeError
from .wire import (
    DecodeContext,
    Reader,
    WireType,
    check_wire_type,
    decode_key,
    encode_key,
    encode_varint,
    encoded_len_varint,
    key_len,
    merge_loop,
    skip_field,
)


class _MessageLike(Protocol):
    def encode_raw(self, buf: bytearray) -> None: ...

    def encoded_len(self) -> int: ...

    def merge_field(
        self, tag: int, wire_type: WireType, reader: Reader, ctx: DecodeContext
    ) -> None: ...


_Factory = Callable[[], Any]


def _merge_one_field(msg: _MessageLike, reader: Reader, ctx: DecodeContext) -> None:
    tag, wire_type = decode_key(reader)
    msg.merge_field(tag, wire_type, reader, ctx)


# Nested messages.


def encode_message(tag: int, msg: _MessageLike, buf: bytearray) -> None:
    """Append ``msg`` as a length-delimited field ``tag``."""
    encode_key(tag, WireType.LENGTH_DELIMITED, buf)
    encode_varint(msg.encoded_len(), buf)
    msg.encode_raw(buf)


def merge_message(
    wire_type: WireType, msg: _MessageLike, reader: Reader, ctx: DecodeContext
) -> None:
    """Decode a length-delimited message payload and merge it into ``msg``."""
    check_wire_type(WireType.LENGTH_DELIMITED, wire_type)
    ctx.check_limit()
    merge_loop(msg, reader, ctx.enter_recursion(), _merge_one_field)


def encode_repeated_messages(
    tag: int, messages: Sequence[_MessageLike], buf: bytearray
) -> None:
    """Append every message as its own field ``tag``."""
    for msg in messages:
        encode_message(tag, msg, buf)


def merge_repeated_messages(
    wire_type: WireType,
    messages: MutableSequence[Any],
    reader: Reader,
    ctx: DecodeContext,
    factory: _Factory,
) -> None:
    """Decode one message, made by ``factory``, and append it to ``messages``."""
    check_wire_type(WireType.LENGTH_DELIMITED, wire_type)
    msg = factory()
    merge_message(WireType.LENGTH_DELIMITED, msg, reader, ctx)
    messages.append(msg)


def encoded_len_message(tag: int, msg: _MessageLike) -> int:
    """Length in bytes of ``msg`` encoded as field ``tag``."""
    length = msg.encoded_len()
    return key_len(tag) + encoded_len_varint(length) + length


def encoded_len_repeated_messages(tag: int, messages: Sequence[_MessageLike]) -> int:
    """Length in bytes of ``messages`` encoded by ``encode_repeated_messages``."""
    total = key_len(tag) * len(messages)
    for msg in messages:
        length = msg.encoded_len()
        total += length + encoded_len_varint(length)
    return total


# Groups.


def encode_group(tag: int, msg: _MessageLike, buf: bytearray) -> None:
    """Append ``msg`` between start-group and end-group keys for ``tag``."""
    encode_key(tag, WireType.START_GROUP, buf)
    msg.encode_raw(buf)
    encode_key(tag, WireType.END_GROUP, buf)


def merge_group(
    tag: int,
    wire_type: WireType,
    msg: _MessageLike,
    reader: Reader,
    ctx: DecodeContext,
) -> None:
    """Merge fields into ``msg`` until the end-group key for ``tag``."""
    check_wire_type(WireType.START_GROUP, wire_type)
    ctx.check_limit()
    while True:
        field_tag, field_wire_type = decode_key(reader)
        if field_wire_type == WireType.END_GROUP:
            if field_tag != tag:
                raise DecodeError("unexpected end group tag")
            return
        msg.merge_field(field_tag, field_wire_type, reader, ctx.enter_recursion())


def encode_repeated_groups(
    tag: int, messages: Sequence[_MessageLike], buf: bytearray
) -> None:
    """Append every message as its own group ``tag``."""
    for msg in messages:
        encode_group(tag, msg, buf)


def merge_repeated_groups(
    tag: int,
    wire_type: WireType,
    messages: MutableSequence[Any],
    reader: Reader,
    ctx: DecodeContext,
    factory: _Factory,
) -> None:
    """Decode one group, made by ``factory``, and append it to ``messages``."""
    check_wire_type(WireType.START_GROUP, wire_type)
    msg = factory()
    merge_group(tag, WireType.START_GROUP, msg, reader, ctx)
    messages.append(msg)


def encoded_len_group(tag: int, msg: _MessageLike) -> int:
    """Length in bytes of ``msg`` encoded as group ``tag``."""
    return 2 * key_len(tag) + msg.encoded_len()


def encoded_len_repeated_groups(tag: int, messages: Sequence[_MessageLike]) -> int:
    """Length in bytes of ``messages`` encoded by ``encode_repeated_groups``."""
    return 2 * key_len(tag) * len(messages) + sum(m.encoded_len() for m in messages)


class MessageCodec:
    """A field codec for nested messages, usable as a map value codec."""

    name = "message"
    wire_type = WireType.LENGTH_DELIMITED

    def __init__(self, factory: _Factory) -> None:
        self.factory = factory

    def __repr__(self) -> str:
        return f"<MessageCodec {self.factory!r}>"

    @property
    def default(self) -> Any:
        """A fresh default message."""
        return self.factory()

    def encode(self, tag: int, value: _MessageLike, buf: bytearray) -> None:
        encode_message(tag, value, buf)

    def merge(
        self, wire_type: WireType, value: Any, reader: Reader, ctx: DecodeContext
    ) -> Any:
        """Merge a payload into ``value`` (a new message if None) and return it."""
        if value is None:
            value = self.factory()
        merge_message(wire_type, value, reader, ctx)
        return value

    def encoded_len(self, tag: int, value: _MessageLike) -> int:
        return encoded_len_message(tag, value)


# Maps.


def _entry_len(key_codec: Any, value_codec: Any, key: Any, val: Any, value_default: Any) -> int:
    length = 0
    if key != key_codec.default:
        length += key_codec.encoded_len(1, key)
    if val != value_default:
        length += value_codec.encoded_len(2, val)
    return length


def _value_default(value_codec: Any, value_default: Any) -> Any:
    return value_codec.default if value_default is None else value_default


def encode_map(
    key_codec: Any,
    value_codec: Any,
    tag: int,
    values: MutableMapping[Any, Any],
    buf: bytearray,
    value_default: Any = None,
) -> None:
    """Append one entry field per item; default keys and values are left out.

    ``value_default`` overrides the value codec's default, as enumerations
    may have a non-zero default.
    """
    default = _value_default(value_codec, value_default)
    for key, val in values.items():
        skip_key = key == key_codec.default
        skip_val = val == default
        length = _entry_len(key_codec, value_codec, key, val, default)
        encode_key(tag, WireType.LENGTH_DELIMITED, buf)
        encode_varint(length, buf)
        if not skip_key:
            key_codec.encode(1, key, buf)
        if not skip_val:
            value_codec.encode(2, val, buf)


def merge_map(
    key_codec: Any,
    value_codec: Any,
    values: MutableMapping[Any, Any],
    reader: Reader,
    ctx: DecodeContext,
    value_default: Any = None,
) -> None:
    """Decode one map entry payload and store it in ``values``."""
    entry = [key_codec.default, copy.deepcopy(_value_default(value_codec, value_default))]

    def merge_entry(state: list, entry_reader: Reader, entry_ctx: DecodeContext) -> None:
        field_tag, wire_type = decode_key(entry_reader)
        if field_tag == 1:
            state[0] = key_codec.merge(wire_type, state[0], entry_reader, entry_ctx)
        elif field_tag == 2:
            state[1] = value_codec.merge(wire_type, state[1], entry_reader, entry_ctx)
        else:
            skip_field(wire_type, field_tag, entry_reader, entry_ctx)

    ctx.check_limit()
    merge_loop(entry, reader, ctx.enter_recursion(), merge_entry)
    values[entry[0]] = entry[1]


def encoded_len_map(
    key_codec: Any,
    value_codec: Any,
    tag: int,
    values: MutableMapping[Any, Any],
    value_default: Any = None,
) -> int:
    """Length in bytes of ``values`` encoded by ``encode_map``."""
    default = _value_default(value_codec, value_default)
    total = key_len(tag) * len(values)
    for key, val in values.items():
        length = _entry_len(key_codec, value_codec, key, val, default)
        total += encoded_len_varint(length) + length
    return total