from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict

from mixnet_parts.protocol.ids import IdError, SenderId
from mixnet_parts.reassembly.base import XX_MESSAGE

UINT32_MAX = 0xFFFFFFFF
INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1


class ValidationError(ValueError):
    status = 400


class MethodNotAllowed(ValidationError):
    status = 405


@dataclass(frozen=True)
class InboundFragment:
    sender: SenderId
    payload: bytes
    relationship_fingerprint: bytes | None = None
    message_type: int = XX_MESSAGE
    timestamp_ns: int | None = None


def decode_base64(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"illegal base64 data: {exc}") from exc


def _string_field(data: Dict[str, Any], name: str) -> str | None:
    value = data.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"invalid JSON: field {name} must be a string")
    return value


def _int_field(data: Dict[str, Any], name: str, low: int, high: int) -> int | None:
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"invalid JSON: field {name} must be an integer")
    if not (low <= value <= high):
        raise ValidationError(f"invalid JSON: field {name} out of range {low}..{high}")
    return value


def parse_sender(value: str | None) -> SenderId:
    if not value:
        raise ValidationError("invalid senderId: sender ID required")
    try:
        raw = decode_base64(value)
        return SenderId.unmarshal(raw)
    except (IdError, ValueError) as exc:
        raise ValidationError(f"invalid senderId: {exc}") from exc


def parse_inbound(method: str, body: bytes) -> InboundFragment:
    if method.upper() != "POST":
        raise MethodNotAllowed("only POST allowed")
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise ValidationError(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError("invalid JSON: body must be a JSON object")

    sender = parse_sender(_string_field(data, "senderId"))

    payload_text = _string_field(data, "payload")
    if payload_text is None:
        raise ValidationError("invalid payload: payload required")
    try:
        payload = decode_base64(payload_text)
    except ValueError as exc:
        raise ValidationError(f"invalid payload: {exc}") from exc

    fingerprint: bytes | None = None
    fingerprint_text = _string_field(data, "relationshipFingerprint")
    if fingerprint_text:
        try:
            fingerprint = decode_base64(fingerprint_text)
        except ValueError as exc:
            raise ValidationError(f"invalid relationshipFingerprint: {exc}") from exc

    message_type = _int_field(data, "messageType", 0, UINT32_MAX)
    timestamp_ns = _int_field(data, "timestampNs", INT64_MIN, INT64_MAX)

    return InboundFragment(
        sender=sender,
        payload=payload,
        relationship_fingerprint=fingerprint,
        message_type=XX_MESSAGE if message_type is None else message_type,
        timestamp_ns=timestamp_ns,
    )
