from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple

from mixnet_parts.config.ndf import ConfigurationError

DEFAULT_ADDR = ":8080"
DEFAULT_NDF_PATH = "ndf.json"
DEFAULT_PARTITION_TTL_MS = 24 * 60 * 60 * 1000
DEFAULT_MAX_BODY_BYTES = 1 << 20


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_addr(addr: str) -> Tuple[str, int]:
    host, sep, port_text = addr.rpartition(":")
    if not sep:
        raise ValueError(f"address must be HOST:PORT or :PORT, got {addr!r}")
    try:
        port = int(port_text)
    except ValueError as exc:
        raise ValueError(f"invalid port in address {addr!r}") from exc
    if not (0 <= port <= 65535):
        raise ValueError(f"port out of range in address {addr!r}")
    return host.strip("[]"), port


@dataclass(frozen=True)
class ServerSpec:
    addr: str = DEFAULT_ADDR
    ndf_path: str = DEFAULT_NDF_PATH
    log_dir: str | None = None
    run_id: str = "parts"
    partition_ttl_ms: int = DEFAULT_PARTITION_TTL_MS
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerSpec":
        return cls(
            addr=str(data.get("addr", DEFAULT_ADDR)),
            ndf_path=str(data.get("ndf_path", DEFAULT_NDF_PATH)),
            log_dir=_optional_str(data.get("log_dir")),
            run_id=str(data.get("run_id", "parts")),
            partition_ttl_ms=int(data.get("partition_ttl_ms", DEFAULT_PARTITION_TTL_MS)),
            max_body_bytes=int(data.get("max_body_bytes", DEFAULT_MAX_BODY_BYTES)),
        )

    def validate(self) -> None:
        parse_addr(self.addr)
        if not self.ndf_path:
            raise ValueError("ndf_path must be non-empty")
        if not self.run_id:
            raise ValueError("run_id must be non-empty")
        if self.partition_ttl_ms <= 0:
            raise ValueError("partition_ttl_ms must be > 0")
        if self.max_body_bytes <= 0:
            raise ValueError("max_body_bytes must be > 0")

    def with_overrides(self, **overrides: Any) -> "ServerSpec":
        data = self.as_dict()
        data.update({key: value for key, value in overrides.items() if value is not None})
        return ServerSpec.from_dict(data)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "addr": self.addr,
            "ndf_path": self.ndf_path,
            "log_dir": self.log_dir,
            "run_id": self.run_id,
            "partition_ttl_ms": self.partition_ttl_ms,
            "max_body_bytes": self.max_body_bytes,
        }


def _load_json(path: Path) -> Dict[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigurationError(f"invalid server config JSON in {path}: {exc}") from exc


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        import yaml
    except ImportError as exc:
        raise ConfigurationError("PyYAML is required to load YAML server configs") from exc
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"invalid server config YAML in {path}: {exc}") from exc


def load_serverspec(path: str | Path) -> ServerSpec:
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"server config not found: {path}")
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = _load_yaml(path)
        else:
            data = _load_json(path)
    except OSError as exc:
        raise ConfigurationError(f"cannot read server config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"server config must be a mapping: {path}")
    spec = ServerSpec.from_dict(data)
    spec.validate()
    return spec


def save_serverspec(path: str | Path, spec: ServerSpec) -> None:
    path = Path(path)
    data = spec.as_dict()
    if path.suffix.lower() in {".yaml", ".yml"}:
        try:
            import yaml
        except ImportError as exc:
            raise RuntimeError("PyYAML is required to write YAML server configs") from exc
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    else:
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
