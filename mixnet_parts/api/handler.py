from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Dict

from mixnet_parts.api.request import InboundFragment
from mixnet_parts.protocol.part import PartFormatError
from mixnet_parts.reassembly.base import NO_TYPE, AssembledMessage, IReassembler, ReassemblyError
from mixnet_parts.runtime.logging import JsonlLogger


@dataclass(frozen=True)
class PartResponse:
    accepted: bool
    completed: bool
    message_type: int
    byte_count: int
    completed_payload: bytes | None = None
    info: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "accepted": self.accepted,
            "completed": self.completed,
            "messageType": self.message_type,
            "bytes": self.byte_count,
        }
        if self.completed_payload is not None:
            data["completedPayload"] = base64.b64encode(self.completed_payload).decode("ascii")
        if self.info:
            data["info"] = self.info
        return data


def describe(message: AssembledMessage) -> str:
    return f"assembled {len(message.payload)} bytes from sender {message.sender}"


def apply_overrides(message: AssembledMessage, fragment: InboundFragment) -> None:
    """Overrides only touch the message returned to the completing request.

    A zero message type leaves the type carried by the first part in place.
    """
    if fragment.message_type != NO_TYPE:
        message.message_type = fragment.message_type
    if fragment.timestamp_ns is not None:
        message.timestamp_ns = fragment.timestamp_ns


class PartHandler:
    def __init__(self, reassembler: IReassembler, logger: JsonlLogger | None = None) -> None:
        self._reassembler = reassembler
        self._logger = logger

    @property
    def max_fragment_size(self) -> int:
        return self._reassembler.max_fragment_size

    def _log(self, event: str, fields: Dict[str, Any]) -> None:
        if self._logger is not None:
            self._logger.log_event(event, fields)

    def handle(self, fragment: InboundFragment) -> PartResponse:
        sender = str(fragment.sender)
        try:
            message, _, complete = self._reassembler.handle_part(
                fragment.sender,
                fragment.payload,
                fragment.relationship_fingerprint,
                None,
            )
        except PartFormatError as exc:
            self._log("part_rejected", {"sender": sender, "reason": str(exc)})
            raise
        except ReassemblyError as exc:
            self._log("reassembly_failed", {"sender": sender, "reason": str(exc)})
            raise

        self._log(
            "part_accepted",
            {"sender": sender, "bytes": len(fragment.payload), "completed": complete},
        )
        if not complete:
            return PartResponse(
                accepted=True,
                completed=False,
                message_type=fragment.message_type,
                byte_count=len(fragment.payload),
            )
        if message is None:
            self._log("reassembly_failed", {"sender": sender, "reason": "no message"})
            raise ReassemblyError("reassembler reported completion without a message")

        apply_overrides(message, fragment)
        info = describe(message)
        self._log(
            "message_completed",
            {
                "sender": sender,
                "message_id": message.message_id,
                "message_type": message.message_type,
                "timestamp_ns": message.timestamp_ns,
                "payload_bytes": len(message.payload),
            },
        )
        return PartResponse(
            accepted=True,
            completed=True,
            message_type=message.message_type,
            byte_count=len(fragment.payload),
            completed_payload=message.payload,
            info=info,
        )
