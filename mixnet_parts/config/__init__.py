from mixnet_parts.config.ndf import (
    CmixMessageFormat,
    ConfigurationError,
    NdfDocument,
    NdfFormatError,
    derive_max_fragment_size,
    load_ndf,
)
from mixnet_parts.config.serverspec import (
    ServerSpec,
    load_serverspec,
    parse_addr,
    save_serverspec,
)

__all__ = [
    "CmixMessageFormat",
    "ConfigurationError",
    "NdfDocument",
    "NdfFormatError",
    "derive_max_fragment_size",
    "load_ndf",
    "ServerSpec",
    "load_serverspec",
    "parse_addr",
    "save_serverspec",
]
