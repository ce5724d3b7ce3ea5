# wirebuf

Building blocks for reading and writing the Protocol Buffers wire format.
The package is pure Python and needs no other packages.

## What it offers

- `wirebuf.wire` holds the low-level pieces:
  - LEB128 varints: `encode_varint`, `decode_varint` and `encoded_len_varint`.
  - Field keys: `encode_key`, `decode_key` and `key_len`. Tags must lie between `MIN_TAG` (1) and `MAX_TAG` (2**29 - 1).
  - `WireType`, an `IntEnum` of the six wire types.
  - `Reader`, a cursor over a `bytes`, `bytearray` or `memoryview`.
  - `DecodeContext`, which enforces a nesting limit of `RECURSION_LIMIT` (100).
  - `check_wire_type`, which raises when a field has the wrong wire type.
  - `merge_loop`, which reads a length prefix and decodes until the length is used up.
  - `skip_field`, which consumes fields the reader does not know, nested groups included.
- `wirebuf.scalars` holds one codec object for each scalar type:
  - Varint types: `int32`, `int64`, `uint32`, `uint64`, `sint32`, `sint64` and `bool_`.
  - Fixed-width types: `fixed32`, `fixed64`, `sfixed32`, `sfixed64`, `float_` and `double`.
  - Length-delimited types: `string` and `bytes_`.

  Every codec has `encode`, `merge`, `encoded_len` and their `_repeated` forms. The numeric codecs also have `encode_packed` and `encoded_len_packed`. Their `merge_repeated` accepts both packed and unpacked input.
- `wirebuf.composite` encodes, merges and sizes three kinds of field:
  - Nested messages: `encode_message`, `merge_message`, `MessageCodec` and the others.
  - Groups: `encode_group`, `merge_group` and the others.
  - Map fields: `encode_map`, `merge_map` and `encoded_len_map`.
- `wirebuf.errors` defines `DecodeError` and `EncodeError`.

## Varints

```python
from wirebuf.wire import Reader, decode_varint, encode_varint, encoded_len_varint

buf = bytearray()
encode_varint(300, buf)
assert bytes(buf) == b"\xac\x02"
assert encoded_len_varint(300) == 2
assert decode_varint(Reader(bytes(buf))) == 300
```

## Scalar fields

A codec writes the key and the payload. `merge` reads the payload after you have read the key, and returns the new value.

```python
from wirebuf import scalars
from wirebuf.wire import DecodeContext, Reader, decode_key

buf = bytearray()
scalars.int32.encode(1, 150, buf)
assert bytes(buf) == b"\x08\x96\x01"

reader = Reader(bytes(buf))
tag, wire_type = decode_key(reader)
assert tag == 1
assert scalars.int32.merge(wire_type, 0, reader, DecodeContext()) == 150
```

## Messages, groups and maps

`wirebuf.composite` accepts any object that has these three methods:

- `encode_raw(buf)`
- `encoded_len()`
- `merge_field(tag, wire_type, reader, ctx)`

Messages are merged in place.

```python
from wirebuf import composite, scalars
from wirebuf.wire import DecodeContext, Reader, decode_key, skip_field


class Point:
    def __init__(self):
        self.x = 0

    def encode_raw(self, buf):
        if self.x:
            scalars.sint32.encode(1, self.x, buf)

    def encoded_len(self):
        return scalars.sint32.encoded_len(1, self.x) if self.x else 0

    def merge_field(self, tag, wire_type, reader, ctx):
        if tag == 1:
            self.x = scalars.sint32.merge(wire_type, self.x, reader, ctx)
        else:
            skip_field(wire_type, tag, reader, ctx)


point = Point()
point.x = -3
buf = bytearray()
composite.encode_message(2, point, buf)

reader = Reader(bytes(buf))
tag, wire_type = decode_key(reader)
decoded = Point()
composite.merge_message(wire_type, decoded, reader, DecodeContext())
assert decoded.x == -3
```

Map entries are encoded one field per item. A key or value equal to its default is left out of the entry. `value_default` overrides the value codec's default.

## Errors

- `DecodeError` is raised for malformed input. This covers a bad varint, a bad key or wire type, a buffer underflow, invalid UTF-8 and a mismatched end-group tag. It is also raised when nesting goes past the recursion limit. Its text begins `failed to decode Protobuf message: `. Its `push(message, field)` method records where in a message the failure happened.
- `EncodeError` carries `required` and `remaining` byte counts. You can raise it when output does not fit the space available.
- `ValueError` is raised when a value or a tag is out of range for its type.

## What it does not do

- There is no message base class, and there are no ready-made message types. You write your own objects with the three methods shown above.
- There is no whole-message `encode` or `decode` helper.
- Nothing generates code from `.proto` files.
- Nothing reads or writes a stream of length-delimited messages.

## Running the tests

```
pip install -e ".[test]"
pytest
```