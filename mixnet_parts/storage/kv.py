from __future__ import annotations

import base64
import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict

from mixnet_parts.runtime.scheduler import Clock, RealClock


class KeyNotFound(KeyError):
    pass


class KVStore(ABC):
    @abstractmethod
    def get(self, key: str) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KVStore):
    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes:
        with self._lock:
            try:
                return self._data[key]
            except KeyError:
                raise KeyNotFound(key) from None

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


@dataclass(frozen=True)
class VersionedObject:
    version: int
    timestamp_ms: int
    data: bytes

    def as_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "timestamp_ms": self.timestamp_ms,
            "data": base64.b64encode(self.data).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionedObject":
        return cls(
            version=int(data["version"]),
            timestamp_ms=int(data["timestamp_ms"]),
            data=base64.b64decode(data["data"]),
        )


class VersionedKV:
    def __init__(self, store: KVStore, prefix: str = "", clock: Clock | None = None) -> None:
        self._store = store
        self._prefix = prefix
        self._clock = clock or RealClock()

    def prefix(self, name: str) -> "VersionedKV":
        if not name or "/" in name:
            raise ValueError(f"invalid prefix: {name!r}")
        return VersionedKV(self._store, f"{self._prefix}{name}/", clock=self._clock)

    def _key(self, key: str, version: int) -> str:
        return f"{self._prefix}{key}_v{version}"

    def get(self, key: str, version: int) -> VersionedObject:
        raw = self._store.get(self._key(key, version))
        obj = VersionedObject.from_dict(json.loads(raw.decode("utf-8")))
        if obj.version != version:
            raise ValueError(f"stored version {obj.version} does not match {version} for {key}")
        return obj

    def set(self, key: str, version: int, data: bytes) -> VersionedObject:
        obj = VersionedObject(version=version, timestamp_ms=self._clock.now_ms(), data=bytes(data))
        encoded = json.dumps(obj.as_dict(), sort_keys=True).encode("utf-8")
        self._store.set(self._key(key, version), encoded)
        return obj

    def delete(self, key: str, version: int) -> None:
        self._store.delete(self._key(key, version))
