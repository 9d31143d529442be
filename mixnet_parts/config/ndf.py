from __future__ import annotations

import binascii
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

# cMix message geometry: two payloads of prime length each.
KEY_FP_LEN = 32
MAC_LEN = 32
EPHEMERAL_RID_LEN = 8
SIH_LEN = 25
RECIPIENT_ID_LEN = EPHEMERAL_RID_LEN + SIH_LEN
VERSION_LEN = 1
MINIMUM_PRIME_SIZE = 2 * MAC_LEN + RECIPIENT_ID_LEN
ASSOCIATED_DATA_SIZE = KEY_FP_LEN + MAC_LEN + RECIPIENT_ID_LEN


class ConfigurationError(RuntimeError):
    pass


class NdfFormatError(ConfigurationError):
    pass


@dataclass(frozen=True)
class CmixMessageFormat:
    prime_size: int

    def __post_init__(self) -> None:
        if self.prime_size < MINIMUM_PRIME_SIZE:
            raise NdfFormatError(
                f"prime of {self.prime_size} bytes is below the minimum of {MINIMUM_PRIME_SIZE}"
            )

    @property
    def total_size(self) -> int:
        return 2 * self.prime_size

    def contents_size(self) -> int:
        return self.total_size - ASSOCIATED_DATA_SIZE - VERSION_LEN


@dataclass(frozen=True)
class NdfDocument:
    prime_hex: str

    @classmethod
    def from_dict(cls, data: Any) -> "NdfDocument":
        if not isinstance(data, dict):
            raise ConfigurationError("ndf must be a JSON object")
        cmix = data.get("Cmix")
        if not isinstance(cmix, dict):
            raise ConfigurationError("ndf missing cmix prime")
        prime = cmix.get("Prime")
        if prime is None or prime == "":
            raise ConfigurationError("ndf missing cmix prime")
        if not isinstance(prime, str):
            raise ConfigurationError("ndf cmix prime must be a hex string")
        return cls(prime_hex=prime)

    def prime_bytes(self) -> bytes:
        text = "".join(self.prime_hex.split())
        if text[:2].lower() == "0x":
            text = text[2:]
        if not text:
            raise NdfFormatError("invalid prime hex: empty")
        try:
            return binascii.unhexlify(text)
        except (binascii.Error, ValueError) as exc:
            raise NdfFormatError(f"invalid prime hex: {exc}") from exc

    def message_format(self) -> CmixMessageFormat:
        return CmixMessageFormat(prime_size=len(self.prime_bytes()))

    def as_dict(self) -> Dict[str, Any]:
        return {"Cmix": {"Prime": self.prime_hex}}


def load_ndf(path: str | Path) -> NdfDocument:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"cannot read ndf {path}: {exc}") from exc
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ConfigurationError(f"invalid ndf JSON in {path}: {exc}") from exc
    return NdfDocument.from_dict(data)


def derive_max_fragment_size(path: str | Path) -> int:
    return load_ndf(path).message_format().contents_size()
