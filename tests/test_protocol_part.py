import base64

import pytest

from mixnet_parts.protocol.ids import ID_LEN, IdError, IdType, SenderId
from mixnet_parts.protocol.part import (
    FIRST_HEADER_LEN,
    HEADER_LEN,
    MAX_MESSAGE_PARTS,
    FirstPart,
    MessagePart,
    PartFormatError,
    count_parts,
    max_payload_size,
    parse_part,
    partition_payload,
)


def test_sender_id_unmarshal_and_str() -> None:
    sender = SenderId.new(bytes(range(32)))
    assert sender.id_type is IdType.USER
    assert len(sender.marshal()) == ID_LEN
    assert SenderId.unmarshal(sender.marshal()) == sender
    assert str(sender) == base64.b64encode(sender.marshal()).decode("ascii")


@pytest.mark.parametrize("raw", [b"", bytes(32), bytes(34), bytes(32) + b"\x09"])
def test_sender_id_unmarshal_rejects(raw: bytes) -> None:
    with pytest.raises(IdError):
        SenderId.unmarshal(raw)


def test_header_lengths() -> None:
    assert HEADER_LEN == 8
    assert FIRST_HEADER_LEN == 21


def test_first_part_layout_is_big_endian() -> None:
    raw = FirstPart(
        message_id=0x01020304,
        num_parts=3,
        message_type=2,
        timestamp_ns=0x1122334455667788,
        contents=b"hi",
    ).to_bytes(40)
    assert len(raw) == 40
    assert raw[:4] == b"\x01\x02\x03\x04"
    assert raw[4] == 0
    assert raw[5:7] == b"\x00\x02"
    assert raw[7] == 3
    assert raw[8:12] == b"\x00\x00\x00\x02"
    assert raw[12:20] == bytes.fromhex("1122334455667788")
    assert raw[20:22] == b"hi"
    assert raw[-1] == 0


def test_continuation_part_parses() -> None:
    raw = MessagePart(message_id=7, part=2, contents=b"abc").to_bytes(20)
    parsed = parse_part(raw)
    assert parsed == MessagePart(message_id=7, part=2, contents=b"abc")


def test_parse_part_ignores_padding() -> None:
    part = FirstPart(message_id=1, num_parts=1, message_type=5, timestamp_ns=9, contents=b"x")
    raw = part.to_bytes(64)
    parsed = parse_part(raw)
    assert isinstance(parsed, FirstPart)
    assert parsed.contents == b"x"
    assert parsed.message_type == 5
    assert parsed.timestamp_ns == 9


def test_parse_part_rejects_short_frames() -> None:
    with pytest.raises(PartFormatError):
        parse_part(b"\x00\x00")
    with pytest.raises(PartFormatError, match="first part"):
        parse_part(bytes(HEADER_LEN))


def test_parse_part_rejects_length_over_capacity() -> None:
    raw = bytearray(MessagePart(message_id=1, part=1, contents=b"ab").to_bytes(12))
    raw[5:7] = (200).to_bytes(2, "big")
    with pytest.raises(PartFormatError, match="exceeds part capacity"):
        parse_part(bytes(raw))


def test_parse_part_rejects_zero_num_parts() -> None:
    part = FirstPart(message_id=1, num_parts=1, message_type=2, timestamp_ns=0, contents=b"")
    raw = bytearray(part.to_bytes(30))
    raw[7] = 0
    with pytest.raises(PartFormatError, match="num_parts"):
        parse_part(bytes(raw))


def test_count_parts_and_limits() -> None:
    size = 100
    first = size - FIRST_HEADER_LEN
    other = size - HEADER_LEN
    assert count_parts(0, size) == 1
    assert count_parts(first, size) == 1
    assert count_parts(first + 1, size) == 2
    assert count_parts(first + other + 1, size) == 3
    assert max_payload_size(size) == first + (MAX_MESSAGE_PARTS - 1) * other
    with pytest.raises(PartFormatError, match="exceeds limit"):
        count_parts(max_payload_size(size) + 1, size)


def test_partition_payload_roundtrip_contents() -> None:
    payload = bytes(range(256)) * 3
    parts = partition_payload(payload, 120, message_id=42, message_type=2, timestamp_ns=1)
    assert all(len(part) == 120 for part in parts)
    parsed = [parse_part(part) for part in parts]
    assert isinstance(parsed[0], FirstPart)
    assert parsed[0].num_parts == len(parts)
    assert [p.part for p in parsed] == list(range(len(parts)))
    assert b"".join(p.contents for p in parsed) == payload


def test_partition_payload_rejects_bad_inputs() -> None:
    with pytest.raises(PartFormatError, match="no room"):
        partition_payload(b"x", FIRST_HEADER_LEN, message_id=0, message_type=2, timestamp_ns=0)
    with pytest.raises(PartFormatError, match="32 bits"):
        partition_payload(b"x", 100, message_id=1 << 32, message_type=2, timestamp_ns=0)
    with pytest.raises(PartFormatError, match="timestamp_ns"):
        partition_payload(b"x", 100, message_id=0, message_type=2, timestamp_ns=-1)
