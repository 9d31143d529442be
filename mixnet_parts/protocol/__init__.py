from mixnet_parts.protocol.ids import IdError, IdType, SenderId
from mixnet_parts.protocol.part import (
    MAX_MESSAGE_PARTS,
    FirstPart,
    MessagePart,
    PartFormatError,
    parse_part,
    partition_payload,
)

__all__ = [
    "IdError",
    "IdType",
    "SenderId",
    "MAX_MESSAGE_PARTS",
    "FirstPart",
    "MessagePart",
    "PartFormatError",
    "parse_part",
    "partition_payload",
]
