from mixnet_parts.api.handler import PartHandler, PartResponse
from mixnet_parts.api.request import (
    InboundFragment,
    MethodNotAllowed,
    ValidationError,
    parse_inbound,
)
from mixnet_parts.api.server import PARTS_PATH, PartsHTTPServer, build_server

__all__ = [
    "PartHandler",
    "PartResponse",
    "InboundFragment",
    "MethodNotAllowed",
    "ValidationError",
    "parse_inbound",
    "PARTS_PATH",
    "PartsHTTPServer",
    "build_server",
]
