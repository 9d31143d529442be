from __future__ import annotations

import json
import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Tuple
from urllib.parse import urlsplit

from mixnet_parts.api.handler import PartHandler
from mixnet_parts.api.request import ValidationError, parse_inbound
from mixnet_parts.config.serverspec import DEFAULT_MAX_BODY_BYTES, ServerSpec, parse_addr
from mixnet_parts.protocol.part import PartFormatError
from mixnet_parts.reassembly.base import ReassemblyError
from mixnet_parts.reassembly.partitioner import Partitioner
from mixnet_parts.runtime.logging import JsonlLogger
from mixnet_parts.runtime.scheduler import Clock
from mixnet_parts.storage.kv import MemoryStore, VersionedKV

PARTS_PATH = "/api/parts"
HEALTH_PATH = "/healthz"
DRAIN_CHUNK = 64 * 1024

log = logging.getLogger(__name__)


class PartsHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(
        self,
        address: Tuple[str, int],
        part_handler: PartHandler,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
    ) -> None:
        self.part_handler = part_handler
        self.max_body_bytes = max_body_bytes
        super().__init__(address, PartsRequestHandler)


class PartsRequestHandler(BaseHTTPRequestHandler):
    server_version = "mixnet-parts/0.1"
    server: PartsHTTPServer

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        log.info("%s - %s", self.address_string(), format % args)

    def _route(self) -> str:
        return urlsplit(self.path).path

    def _send_text(self, status: int, message: str) -> None:
        body = (message + "\n").encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("X-Content-Type-Options", "nosniff")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _send_json(self, status: int, obj: Dict[str, Any]) -> None:
        body = (json.dumps(obj) + "\n").encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _read_body(self) -> bytes | None:
        try:
            length = int(self.headers.get("Content-Length", "0") or "0")
        except ValueError:
            self._send_text(HTTPStatus.BAD_REQUEST, "invalid Content-Length")
            return None
        if length > self.server.max_body_bytes:
            self._drain(length)
            self._send_text(
                HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
                f"request body exceeds {self.server.max_body_bytes} bytes",
            )
            return None
        if length <= 0:
            return b""
        return self.rfile.read(length)

    def _drain(self, length: int) -> None:
        while length > 0:
            chunk = self.rfile.read(min(length, DRAIN_CHUNK))
            if not chunk:
                return
            length -= len(chunk)

    def _discard_body(self) -> None:
        try:
            length = int(self.headers.get("Content-Length", "0") or "0")
        except ValueError:
            return
        self._drain(length)

    def _not_allowed(self) -> None:
        self._discard_body()
        if self._route() == PARTS_PATH:
            self._send_text(HTTPStatus.METHOD_NOT_ALLOWED, "only POST allowed")
            return
        self._send_text(HTTPStatus.NOT_FOUND, "404 page not found")

    def do_GET(self) -> None:
        if self._route() == HEALTH_PATH:
            self._send_json(
                HTTPStatus.OK,
                {"status": "ok", "maxFragmentSize": self.server.part_handler.max_fragment_size},
            )
            return
        self._not_allowed()

    def __getattr__(self, name: str) -> Any:
        # Any verb without its own do_ method (TRACE, CONNECT, custom ones) is not allowed.
        if name.startswith("do_"):
            return self._not_allowed
        raise AttributeError(name)

    def do_POST(self) -> None:
        if self._route() != PARTS_PATH:
            self._discard_body()
            self._send_text(HTTPStatus.NOT_FOUND, "404 page not found")
            return
        body = self._read_body()
        if body is None:
            return
        try:
            fragment = parse_inbound(self.command, body)
            response = self.server.part_handler.handle(fragment)
        except ValidationError as exc:
            self._send_text(exc.status, str(exc))
            return
        except PartFormatError as exc:
            self._send_text(HTTPStatus.BAD_REQUEST, f"invalid payload: {exc}")
            return
        except ReassemblyError as exc:
            log.error("reassembly failed: %s", exc)
            self._send_text(HTTPStatus.INTERNAL_SERVER_ERROR, f"reassembly failed: {exc}")
            return
        self._send_json(HTTPStatus.OK, response.as_dict())


def build_server(
    spec: ServerSpec,
    max_fragment_size: int,
    logger: JsonlLogger | None = None,
    clock: Clock | None = None,
) -> PartsHTTPServer:
    kv = VersionedKV(MemoryStore(), clock=clock)
    partitioner = Partitioner(kv, max_fragment_size, clock=clock, ttl_ms=spec.partition_ttl_ms)
    handler = PartHandler(partitioner, logger)
    return PartsHTTPServer(parse_addr(spec.addr), handler, max_body_bytes=spec.max_body_bytes)
