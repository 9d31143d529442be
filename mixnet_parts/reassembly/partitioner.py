from __future__ import annotations

import base64
import hashlib
import json
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List

from mixnet_parts.protocol.ids import SenderId
from mixnet_parts.protocol.part import (
    FIRST_HEADER_LEN,
    MAX_MESSAGE_PARTS,
    FirstPart,
    PartFormatError,
    parse_part,
)
from mixnet_parts.reassembly.base import (
    AssembledMessage,
    IReassembler,
    KeyResidue,
    ReassemblyError,
)
from mixnet_parts.runtime.scheduler import Clock, RealClock
from mixnet_parts.storage.kv import KeyNotFound, VersionedKV

PARTITION_PREFIX = "partition"
PARTITION_VERSION = 0
DEFAULT_TTL_MS = 24 * 60 * 60 * 1000


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@dataclass
class _PartialMessage:
    sender: SenderId
    relationship_fingerprint: bytes
    message_id: int
    created_ms: int
    num_parts: int | None = None
    message_type: int = 0
    timestamp_ns: int = 0
    key_residue: bytes | None = None
    parts: Dict[int, bytes] = field(default_factory=dict)

    def is_complete(self) -> bool:
        if self.num_parts is None:
            return False
        return all(index in self.parts for index in range(self.num_parts))

    def assemble(self) -> bytes:
        if self.num_parts is None:
            raise ReassemblyError("cannot assemble without the first part")
        return b"".join(self.parts[index] for index in range(self.num_parts))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "sender": _b64(self.sender.marshal()),
            "relationship_fingerprint": _b64(self.relationship_fingerprint),
            "message_id": self.message_id,
            "created_ms": self.created_ms,
            "num_parts": self.num_parts,
            "message_type": self.message_type,
            "timestamp_ns": self.timestamp_ns,
            "key_residue": None if self.key_residue is None else _b64(self.key_residue),
            "parts": {str(index): _b64(data) for index, data in self.parts.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "_PartialMessage":
        residue = data.get("key_residue")
        return cls(
            sender=SenderId.unmarshal(base64.b64decode(data["sender"])),
            relationship_fingerprint=base64.b64decode(data["relationship_fingerprint"]),
            message_id=int(data["message_id"]),
            created_ms=int(data["created_ms"]),
            num_parts=data.get("num_parts"),
            message_type=int(data.get("message_type", 0)),
            timestamp_ns=int(data.get("timestamp_ns", 0)),
            key_residue=None if residue is None else base64.b64decode(residue),
            parts={int(index): base64.b64decode(raw) for index, raw in data["parts"].items()},
        )


class _KeyLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, List[Any]] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


def partition_key(sender: SenderId, relationship_fingerprint: bytes, message_id: int) -> str:
    digest = hashlib.sha256()
    digest.update(sender.marshal())
    digest.update(len(relationship_fingerprint).to_bytes(4, "big"))
    digest.update(relationship_fingerprint)
    digest.update(message_id.to_bytes(4, "big"))
    return digest.hexdigest()


class Partitioner(IReassembler):
    def __init__(
        self,
        kv: VersionedKV,
        max_fragment_size: int,
        clock: Clock | None = None,
        ttl_ms: int = DEFAULT_TTL_MS,
    ) -> None:
        if max_fragment_size <= FIRST_HEADER_LEN:
            raise ValueError(f"max_fragment_size must be > {FIRST_HEADER_LEN}")
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be > 0")
        self._kv = kv.prefix(PARTITION_PREFIX)
        self._max_fragment_size = int(max_fragment_size)
        self._clock = clock or RealClock()
        self._ttl_ms = ttl_ms
        self._locks = _KeyLocks()
        self._active: Dict[str, int] = {}
        self._active_lock = threading.Lock()

    @property
    def max_fragment_size(self) -> int:
        return self._max_fragment_size

    def active_count(self) -> int:
        with self._active_lock:
            return len(self._active)

    def handle_part(
        self,
        sender: SenderId,
        contents: bytes,
        relationship_fingerprint: bytes | None = None,
        key_residue: KeyResidue | None = None,
    ) -> tuple[AssembledMessage | None, KeyResidue | None, bool]:
        if len(contents) > self._max_fragment_size:
            raise PartFormatError(
                f"part length {len(contents)} exceeds max fragment size {self._max_fragment_size}"
            )
        part = parse_part(contents)
        if part.part >= MAX_MESSAGE_PARTS:
            raise PartFormatError(f"part index {part.part} exceeds limit of {MAX_MESSAGE_PARTS}")
        fingerprint = bytes(relationship_fingerprint or b"")
        key = partition_key(sender, fingerprint, part.message_id)
        self.prune()

        with self._locks.hold(key):
            state = self._load(key)
            if state is None:
                state = _PartialMessage(
                    sender=sender,
                    relationship_fingerprint=fingerprint,
                    message_id=part.message_id,
                    created_ms=self._clock.now_ms(),
                )
            if isinstance(part, FirstPart):
                self._apply_first(state, part, key_residue)
            elif state.num_parts is not None and part.part >= state.num_parts:
                raise PartFormatError(
                    f"part index {part.part} out of range for {state.num_parts} parts"
                )
            state.parts[part.part] = part.contents

            if not state.is_complete():
                self._store(key, state)
                return None, None, False

            message = AssembledMessage(
                sender=state.sender,
                payload=state.assemble(),
                message_type=state.message_type,
                timestamp_ns=state.timestamp_ns,
                message_id=state.message_id,
                relationship_fingerprint=state.relationship_fingerprint,
            )
            self._delete(key)
            return message, state.key_residue, True

    def _apply_first(
        self, state: _PartialMessage, part: FirstPart, key_residue: KeyResidue | None
    ) -> None:
        if state.num_parts is not None and state.num_parts != part.num_parts:
            raise ReassemblyError(
                f"first part declares {part.num_parts} parts, previously {state.num_parts}"
            )
        stray = [index for index in state.parts if index >= part.num_parts]
        if stray:
            raise ReassemblyError(
                f"buffered part {max(stray)} out of range for {part.num_parts} parts"
            )
        state.num_parts = part.num_parts
        state.message_type = part.message_type
        state.timestamp_ns = part.timestamp_ns
        state.key_residue = None if key_residue is None else bytes(key_residue)

    def prune(self) -> int:
        cutoff = self._clock.now_ms() - self._ttl_ms
        with self._active_lock:
            stale = [key for key, created in self._active.items() if created <= cutoff]
        removed = 0
        for key in stale:
            with self._locks.hold(key):
                with self._active_lock:
                    created = self._active.get(key)
                if created is None or created > cutoff:
                    continue
                self._delete(key)
                removed += 1
        return removed

    def _load(self, key: str) -> _PartialMessage | None:
        try:
            obj = self._kv.get(key, PARTITION_VERSION)
        except KeyNotFound:
            return None
        return _PartialMessage.from_dict(json.loads(obj.data.decode("utf-8")))

    def _store(self, key: str, state: _PartialMessage) -> None:
        encoded = json.dumps(state.as_dict(), sort_keys=True).encode("utf-8")
        self._kv.set(key, PARTITION_VERSION, encoded)
        with self._active_lock:
            self._active.setdefault(key, state.created_ms)

    def _delete(self, key: str) -> None:
        self._kv.delete(key, PARTITION_VERSION)
        with self._active_lock:
            self._active.pop(key, None)
