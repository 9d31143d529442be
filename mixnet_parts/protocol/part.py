from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import List

ID_FIELD_LEN = 4
PART_FIELD_LEN = 1
LEN_FIELD_LEN = 2
VERSION_LEN = 1
NUM_PARTS_LEN = 1
TYPE_LEN = 4
TIMESTAMP_LEN = 8

HEADER_LEN = ID_FIELD_LEN + PART_FIELD_LEN + LEN_FIELD_LEN + VERSION_LEN
FIRST_HEADER_LEN = HEADER_LEN + NUM_PARTS_LEN + TYPE_LEN + TIMESTAMP_LEN

MESSAGE_PART_VERSION = 0
FIRST_MESSAGE_PART_VERSION = 0
MAX_MESSAGE_PARTS = 255

_BASE = struct.Struct(">IBH")
_FIRST_META = struct.Struct(">BIQ")


class PartFormatError(ValueError):
    pass


def first_contents_size(message_size: int) -> int:
    return message_size - FIRST_HEADER_LEN


def part_contents_size(message_size: int) -> int:
    return message_size - HEADER_LEN


def max_payload_size(message_size: int) -> int:
    return first_contents_size(message_size) + (MAX_MESSAGE_PARTS - 1) * part_contents_size(
        message_size
    )


@dataclass(frozen=True)
class MessagePart:
    message_id: int
    part: int
    contents: bytes

    def to_bytes(self, message_size: int) -> bytes:
        capacity = part_contents_size(message_size)
        if len(self.contents) > capacity:
            raise PartFormatError(
                f"contents length {len(self.contents)} exceeds part capacity {capacity}"
            )
        if not (1 <= self.part <= 0xFF):
            raise PartFormatError("part must be 1..255")
        header = _BASE.pack(self.message_id, self.part, len(self.contents))
        padding = bytes(capacity - len(self.contents))
        return header + self.contents + padding + bytes([MESSAGE_PART_VERSION])


@dataclass(frozen=True)
class FirstPart:
    message_id: int
    num_parts: int
    message_type: int
    timestamp_ns: int
    contents: bytes

    @property
    def part(self) -> int:
        return 0

    def to_bytes(self, message_size: int) -> bytes:
        capacity = first_contents_size(message_size)
        if len(self.contents) > capacity:
            raise PartFormatError(
                f"contents length {len(self.contents)} exceeds first part capacity {capacity}"
            )
        if not (1 <= self.num_parts <= MAX_MESSAGE_PARTS):
            raise PartFormatError(f"num_parts must be 1..{MAX_MESSAGE_PARTS}")
        if not (0 <= self.message_type <= 0xFFFFFFFF):
            raise PartFormatError("message_type must fit in 32 bits")
        if not (0 <= self.timestamp_ns <= 0xFFFFFFFFFFFFFFFF):
            raise PartFormatError("timestamp_ns must fit in 64 bits")
        header = _BASE.pack(self.message_id, 0, len(self.contents))
        meta = _FIRST_META.pack(self.num_parts, self.message_type, self.timestamp_ns)
        padding = bytes(capacity - len(self.contents))
        return header + meta + self.contents + padding + bytes([FIRST_MESSAGE_PART_VERSION])


def is_first(raw: bytes) -> bool:
    if len(raw) < HEADER_LEN:
        raise PartFormatError(f"part must be at least {HEADER_LEN} bytes")
    return raw[ID_FIELD_LEN] == 0


def parse_part(raw: bytes) -> FirstPart | MessagePart:
    if is_first(raw):
        if len(raw) < FIRST_HEADER_LEN:
            raise PartFormatError(f"first part must be at least {FIRST_HEADER_LEN} bytes")
        message_id, _, length = _BASE.unpack_from(raw, 0)
        num_parts, message_type, timestamp_ns = _FIRST_META.unpack_from(raw, _BASE.size)
        if num_parts == 0:
            raise PartFormatError("num_parts must be > 0")
        start = _BASE.size + _FIRST_META.size
        capacity = len(raw) - FIRST_HEADER_LEN
        if length > capacity:
            raise PartFormatError(f"LEN {length} exceeds first part capacity {capacity}")
        return FirstPart(
            message_id=message_id,
            num_parts=num_parts,
            message_type=message_type,
            timestamp_ns=timestamp_ns,
            contents=bytes(raw[start : start + length]),
        )
    message_id, part, length = _BASE.unpack_from(raw, 0)
    capacity = len(raw) - HEADER_LEN
    if length > capacity:
        raise PartFormatError(f"LEN {length} exceeds part capacity {capacity}")
    start = _BASE.size
    contents = bytes(raw[start : start + length])
    return MessagePart(message_id=message_id, part=part, contents=contents)


def count_parts(payload_len: int, message_size: int) -> int:
    first = first_contents_size(message_size)
    other = part_contents_size(message_size)
    if payload_len <= first:
        return 1
    remaining = payload_len - first
    total = 1 + -(-remaining // other)
    if total > MAX_MESSAGE_PARTS:
        raise PartFormatError(
            f"payload needs {total} parts which exceeds limit of {MAX_MESSAGE_PARTS}"
        )
    return total


def partition_payload(
    payload: bytes,
    message_size: int,
    message_id: int,
    message_type: int,
    timestamp_ns: int,
) -> List[bytes]:
    if first_contents_size(message_size) <= 0:
        raise PartFormatError(f"message size {message_size} leaves no room for contents")
    if not (0 <= message_id <= 0xFFFFFFFF):
        raise PartFormatError("message_id must fit in 32 bits")
    num_parts = count_parts(len(payload), message_size)
    first_size = first_contents_size(message_size)
    other_size = part_contents_size(message_size)
    parts = [
        FirstPart(
            message_id=message_id,
            num_parts=num_parts,
            message_type=message_type,
            timestamp_ns=timestamp_ns,
            contents=payload[:first_size],
        ).to_bytes(message_size)
    ]
    cursor = first_size
    index = 1
    while cursor < len(payload):
        chunk = payload[cursor : cursor + other_size]
        part = MessagePart(message_id=message_id, part=index, contents=chunk)
        parts.append(part.to_bytes(message_size))
        cursor += len(chunk)
        index += 1
    return parts
