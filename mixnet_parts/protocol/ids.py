from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import IntEnum

ID_DATA_LEN = 32
ID_LEN = ID_DATA_LEN + 1


class IdError(ValueError):
    pass


class IdType(IntEnum):
    GENERIC = 0
    GATEWAY = 1
    NODE = 2
    USER = 3


@dataclass(frozen=True)
class SenderId:
    raw: bytes

    @classmethod
    def unmarshal(cls, data: bytes) -> "SenderId":
        if len(data) != ID_LEN:
            raise IdError(f"id must be {ID_LEN} bytes, got {len(data)}")
        try:
            IdType(data[-1])
        except ValueError as exc:
            raise IdError(f"unknown id type {data[-1]}") from exc
        return cls(raw=bytes(data))

    @classmethod
    def new(cls, value: bytes, id_type: IdType = IdType.USER) -> "SenderId":
        if len(value) != ID_DATA_LEN:
            raise IdError(f"id value must be {ID_DATA_LEN} bytes")
        return cls(raw=bytes(value) + bytes([int(id_type)]))

    @property
    def id_type(self) -> IdType:
        return IdType(self.raw[-1])

    def marshal(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return base64.b64encode(self.raw).decode("ascii")
