import pytest
from hypothesis import given
from hypothesis import strategies as st

from wirebuf.errors import DecodeError
from wirebuf.wire import (
    MAX_TAG,
    MIN_TAG,
    RECURSION_LIMIT,
    DecodeContext,
    Reader,
    WireType,
    check_wire_type,
    decode_key,
    decode_varint,
    encode_key,
    encode_varint,
    encoded_len_varint,
    key_len,
    merge_loop,
    skip_field,
)

U64_MAX = 2**64 - 1

VARINT_CASES = [
    (2**0 - 1, [0x00]),
    (2**0, [0x01]),
    (2**7 - 1, [0x7F]),
    (2**7, [0x80, 0x01]),
    (300, [0xAC, 0x02]),
    (2**14 - 1, [0xFF, 0x7F]),
    (2**14, [0x80, 0x80, 0x01]),
    (2**21 - 1, [0xFF, 0xFF, 0x7F]),
    (2**21, [0x80, 0x80, 0x80, 0x01]),
    (2**28 - 1, [0xFF, 0xFF, 0xFF, 0x7F]),
    (2**28, [0x80, 0x80, 0x80, 0x80, 0x01]),
    (2**35 - 1, [0xFF, 0xFF, 0xFF, 0xFF, 0x7F]),
    (2**35, [0x80, 0x80, 0x80, 0x80, 0x80, 0x01]),
    (2**42 - 1, [0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0x7F]),
    (2**42, [0x80, 0x80, 0x80, 0x80, 0x80, 0x80, 0x01]),
    (2**49 - 1, [0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0x7F]),
    (2**49, [0x80, 0x80, 0x80, 0x80, 0x80, 0x80, 0x80, 0x01]),
    (2**56 - 1, [0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0x7F]),
    (2**56, [0x80, 0x80, 0x80, 0x80, 0x80, 0x80, 0x80, 0x80, 0x01]),
    (2**63 - 1, [0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0x7F]),
    (2**63, [0x80, 0x80, 0x80, 0x80, 0x80, 0x80, 0x80, 0x80, 0x80, 0x01]),
    (U64_MAX, [0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0x01]),
]


@pytest.mark.parametrize("value, encoded", VARINT_CASES)
def test_varint_table(value, encoded):
    buf = bytearray()
    encode_varint(value, buf)
    assert buf == bytes(encoded)
    assert encoded_len_varint(value) == len(encoded)
    reader = Reader(bytes(encoded))
    assert decode_varint(reader) == value
    assert not reader.has_remaining()


@given(st.integers(min_value=0, max_value=U64_MAX))
def test_varint_roundtrip(value):
    buf = bytearray()
    encode_varint(value, buf)
    assert len(buf) == encoded_len_varint(value)
    assert 1 <= len(buf) <= 10
    reader = Reader(buf + b"tail")
    assert decode_varint(reader) == value
    assert reader.read(4) == b"tail"


@given(st.binary(max_size=16))
def test_decode_varint_arbitrary_input(data):
    reader = Reader(data)
    try:
        value = decode_varint(reader)
    except DecodeError as error:
        assert error.description == "invalid varint"
    else:
        assert 0 <= value <= U64_MAX
        assert len(data) - reader.remaining() <= 10


def test_encode_varint_rejects_out_of_range():
    with pytest.raises(ValueError):
        encode_varint(-1, bytearray())
    with pytest.raises(ValueError):
        encode_varint(U64_MAX + 1, bytearray())


def test_decode_varint_empty():
    with pytest.raises(DecodeError, match="invalid varint"):
        decode_varint(Reader(b""))


def test_decode_varint_too_long():
    with pytest.raises(DecodeError, match="invalid varint"):
        decode_varint(Reader(b"\xff" * 11))


def test_decode_varint_truncated():
    with pytest.raises(DecodeError, match="invalid varint"):
        decode_varint(Reader(b"\x80\x80"))


def test_reader_operations():
    reader = Reader(b"abcdef")
    assert reader.remaining() == 6
    assert reader.read_byte() == ord("a")
    assert reader.read(2) == b"bc"
    reader.advance(2)
    assert reader.remaining() == 1
    assert reader.has_remaining()
    assert reader.read(1) == b"f"
    assert not reader.has_remaining()
    with pytest.raises(DecodeError, match="buffer underflow"):
        reader.read_byte()


def test_reader_advance_past_end():
    reader = Reader(b"ab")
    with pytest.raises(DecodeError, match="buffer underflow"):
        reader.advance(3)
    assert reader.remaining() == 2


def test_decode_context_limit():
    ctx = DecodeContext()
    assert ctx.recurse_count == RECURSION_LIMIT
    for _ in range(RECURSION_LIMIT - 1):
        ctx = ctx.enter_recursion()
    ctx.check_limit()
    assert ctx.recurse_count == 1
    with pytest.raises(DecodeError, match="recursion limit reached"):
        ctx.enter_recursion().check_limit()


@given(
    st.integers(min_value=MIN_TAG, max_value=MAX_TAG),
    st.sampled_from(list(WireType)),
)
def test_key_roundtrip(tag, wire_type):
    buf = bytearray()
    encode_key(tag, wire_type, buf)
    assert len(buf) == key_len(tag)
    assert 1 <= len(buf) <= 5
    assert decode_key(Reader(buf)) == (tag, wire_type)


def test_key_len_bounds():
    assert key_len(MIN_TAG) == 1
    assert key_len(MAX_TAG) == 5


def test_encode_key_rejects_bad_tag():
    with pytest.raises(ValueError):
        encode_key(0, WireType.VARINT, bytearray())
    with pytest.raises(ValueError):
        encode_key(MAX_TAG + 1, WireType.VARINT, bytearray())


def test_group_key_bytes():
    buf = bytearray()
    encode_key(1, WireType.START_GROUP, buf)
    encode_key(1, WireType.END_GROUP, buf)
    assert buf == bytes([0x0B, 0x0C])


def test_decode_key_invalid_key_value():
    buf = bytearray()
    encode_varint(2**32, buf)
    with pytest.raises(DecodeError, match="invalid key value: 4294967296"):
        decode_key(Reader(buf))


def test_decode_key_tag_zero():
    with pytest.raises(DecodeError, match="invalid tag value: 0"):
        decode_key(Reader(b"\x00"))


def test_decode_key_invalid_wire_type():
    with pytest.raises(DecodeError, match="invalid wire type value: 6"):
        decode_key(Reader(b"\x0e"))


def test_check_wire_type():
    check_wire_type(WireType.VARINT, WireType.VARINT)
    with pytest.raises(DecodeError, match="invalid wire type"):
        check_wire_type(WireType.VARINT, WireType.LENGTH_DELIMITED)


def _collect_varint(values, reader, ctx):
    values.append(decode_varint(reader))


def test_merge_loop_reads_delimited_values():
    reader = Reader(bytes([3, 1, 2, 3, 9]))
    values = []
    merge_loop(values, reader, DecodeContext(), _collect_varint)
    assert values == [1, 2, 3]
    assert reader.remaining() == 1


def test_merge_loop_buffer_underflow():
    with pytest.raises(DecodeError, match="buffer underflow"):
        merge_loop([], Reader(bytes([5, 1])), DecodeContext(), _collect_varint)


def test_merge_loop_delimited_length_exceeded():
    with pytest.raises(DecodeError, match="delimited length exceeded"):
        merge_loop([], Reader(bytes([1, 0x80, 0x01])), DecodeContext(), _collect_varint)


@pytest.mark.parametrize(
    "wire_type, data",
    [
        (WireType.VARINT, bytes([0xAC, 0x02])),
        (WireType.THIRTY_TWO_BIT, bytes(4)),
        (WireType.SIXTY_FOUR_BIT, bytes(8)),
        (WireType.LENGTH_DELIMITED, b"\x03abc"),
    ],
)
def test_skip_field_consumes_payload(wire_type, data):
    reader = Reader(data + b"!")
    skip_field(wire_type, 1, reader, DecodeContext())
    assert reader.read(1) == b"!"


@pytest.mark.parametrize(
    "wire_type, data",
    [
        (WireType.THIRTY_TWO_BIT, bytes(3)),
        (WireType.SIXTY_FOUR_BIT, bytes(7)),
        (WireType.LENGTH_DELIMITED, b"\x05ab"),
    ],
)
def test_skip_field_buffer_underflow(wire_type, data):
    with pytest.raises(DecodeError, match="buffer underflow"):
        skip_field(wire_type, 1, Reader(data), DecodeContext())


def test_skip_field_group():
    reader = Reader(bytes([0x2B, 0x30, 0xFF, 0x01, 0x2C, 0x10, 0x20]))
    tag, wire_type = decode_key(reader)
    assert (tag, wire_type) == (5, WireType.START_GROUP)
    skip_field(wire_type, tag, reader, DecodeContext())
    assert reader.read(2) == bytes([0x10, 0x20])


def test_skip_field_group_mismatched_end():
    buf = bytearray()
    encode_key(6, WireType.END_GROUP, buf)
    with pytest.raises(DecodeError, match="unexpected end group tag"):
        skip_field(WireType.START_GROUP, 5, Reader(buf), DecodeContext())


def test_skip_field_bare_end_group():
    with pytest.raises(DecodeError, match="unexpected end group tag"):
        skip_field(WireType.END_GROUP, 5, Reader(b""), DecodeContext())


def test_skip_field_nested_start_groups_hit_recursion_limit():
    reader = Reader(b"C" * (1 << 20))
    tag, wire_type = decode_key(reader)
    assert wire_type == WireType.START_GROUP
    with pytest.raises(DecodeError, match="recursion limit reached"):
        skip_field(wire_type, tag, reader, DecodeContext())