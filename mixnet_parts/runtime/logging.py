from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict

from mixnet_parts.runtime.scheduler import Clock, RealClock


class JsonlLogger:
    def __init__(
        self,
        out_dir: str | Path,
        run_id: str,
        role: str = "server",
        clock: Clock | None = None,
    ) -> None:
        self._dir = Path(out_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._path = self._dir / f"{run_id}_{role}.jsonl"
        self._clock = clock or RealClock()
        self._run_id = run_id
        self._role = role
        self._lock = threading.Lock()
        self._fh = self._path.open("a", encoding="utf-8")

    @property
    def path(self) -> Path:
        return self._path

    def _base_event(self, event: str) -> Dict[str, Any]:
        return {
            "ts_ms": self._clock.now_ms(),
            "run_id": self._run_id,
            "event": event,
            "role": self._role,
        }

    def log_server_start(self, addr: str, max_fragment_size: int, ndf_path: str) -> None:
        self.log_event(
            "server_start",
            {"addr": addr, "max_fragment_size": max_fragment_size, "ndf_path": ndf_path},
        )

    def log_event(self, event: str, fields: Dict[str, Any]) -> None:
        payload = self._base_event(event)
        payload.update(fields)
        self._write(payload)

    def _write(self, payload: Dict[str, Any]) -> None:
        line = json.dumps(payload, ensure_ascii=True) + "\n"
        with self._lock:
            if self._fh.closed:
                return
            self._fh.write(line)
            self._fh.flush()

    def close(self) -> None:
        with self._lock:
            self._fh.close()
