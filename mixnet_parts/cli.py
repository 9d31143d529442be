from __future__ import annotations

import argparse
import base64
import json
import logging
import time
from pathlib import Path

from mixnet_parts.api.request import ValidationError, parse_sender
from mixnet_parts.api.server import build_server
from mixnet_parts.config import (
    ConfigurationError,
    ServerSpec,
    derive_max_fragment_size,
    load_serverspec,
)
from mixnet_parts.protocol.part import PartFormatError, partition_payload
from mixnet_parts.reassembly.base import XX_MESSAGE
from mixnet_parts.runtime.logging import JsonlLogger

log = logging.getLogger("mixnet_parts")


def _load_spec(args: argparse.Namespace) -> ServerSpec:
    spec = load_serverspec(args.config) if args.config else ServerSpec()
    spec = spec.with_overrides(addr=args.addr, ndf_path=args.ndf, log_dir=args.log_dir)
    spec.validate()
    return spec


def _run_serve(args: argparse.Namespace) -> int:
    try:
        spec = _load_spec(args)
        max_len = derive_max_fragment_size(spec.ndf_path)
    except (ConfigurationError, ValueError) as exc:
        log.error("failed to derive max message length: %s", exc)
        return 1

    logger = None
    if spec.log_dir:
        logger = JsonlLogger(spec.log_dir, spec.run_id)
        logger.log_server_start(spec.addr, max_len, spec.ndf_path)
    server = build_server(spec, max_len, logger=logger)
    log.info("server ready on %s (max message length %d bytes)", spec.addr, max_len)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        log.info("server stopped")
    finally:
        server.server_close()
        if logger:
            logger.close()
    return 0


def _run_max_size(args: argparse.Namespace) -> int:
    try:
        max_len = derive_max_fragment_size(args.ndf)
    except ConfigurationError as exc:
        log.error("failed to derive max message length: %s", exc)
        return 1
    print(max_len)
    return 0


def _run_split(args: argparse.Namespace) -> int:
    try:
        max_len = derive_max_fragment_size(args.ndf)
        parse_sender(args.sender)
    except (ConfigurationError, ValidationError) as exc:
        log.error("%s", exc)
        return 1
    payload = Path(args.input).read_bytes()
    timestamp_ns = args.timestamp_ns if args.timestamp_ns is not None else time.time_ns()
    try:
        parts = partition_payload(
            payload,
            max_len,
            message_id=args.message_id,
            message_type=args.message_type,
            timestamp_ns=timestamp_ns,
        )
    except PartFormatError as exc:
        log.error("cannot split payload: %s", exc)
        return 1
    lines = []
    for part in parts:
        body = {"senderId": args.sender, "payload": base64.b64encode(part).decode("ascii")}
        if args.fingerprint:
            body["relationshipFingerprint"] = args.fingerprint
        lines.append(json.dumps(body))
    output = "\n".join(lines)
    if args.out:
        Path(args.out).write_text(output + "\n", encoding="utf-8")
    else:
        print(output)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="mixnet_parts")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="cmd", required=True)

    serve = sub.add_parser("serve", help="run the part ingestion HTTP server")
    serve.add_argument("--config", help="JSON or YAML server config")
    serve.add_argument("--addr", help="HTTP listen address (default :8080)")
    serve.add_argument("--ndf", help="path to the NDF JSON used to derive message size")
    serve.add_argument("--log-dir", help="directory for the JSONL event log")
    serve.set_defaults(func=_run_serve)

    max_size = sub.add_parser("max-size", help="print the max fragment size for an NDF")
    max_size.add_argument("--ndf", default="ndf.json")
    max_size.set_defaults(func=_run_max_size)

    split = sub.add_parser("split", help="split a file into /api/parts request bodies")
    split.add_argument("--ndf", default="ndf.json")
    split.add_argument("--sender", required=True, help="base64 sender id")
    split.add_argument("--in", dest="input", required=True)
    split.add_argument("--fingerprint", help="base64 relationship fingerprint")
    split.add_argument("--message-id", type=int, default=0)
    split.add_argument("--message-type", type=int, default=XX_MESSAGE)
    split.add_argument("--timestamp-ns", type=int)
    split.add_argument("--out")
    split.set_defaults(func=_run_split)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
