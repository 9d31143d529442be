from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from mixnet_parts.protocol.ids import SenderId

XX_MESSAGE = 2
NO_TYPE = 0

KeyResidue = bytes


class ReassemblyError(RuntimeError):
    pass


@dataclass
class AssembledMessage:
    sender: SenderId
    payload: bytes
    message_type: int
    timestamp_ns: int
    message_id: int
    relationship_fingerprint: bytes = b""


class IReassembler(ABC):
    """Buffers parts per (sender, relationship fingerprint) and reports completion.

    Implementations must serialize concurrent calls that share a key so that
    exactly one of them observes the completed message.
    """

    @property
    @abstractmethod
    def max_fragment_size(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def handle_part(
        self,
        sender: SenderId,
        contents: bytes,
        relationship_fingerprint: bytes | None,
        key_residue: KeyResidue | None,
    ) -> tuple[AssembledMessage | None, KeyResidue | None, bool]:
        raise NotImplementedError
