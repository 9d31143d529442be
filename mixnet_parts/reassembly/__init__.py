from mixnet_parts.reassembly.base import (
    NO_TYPE,
    XX_MESSAGE,
    AssembledMessage,
    IReassembler,
    KeyResidue,
    ReassemblyError,
)
from mixnet_parts.reassembly.partitioner import DEFAULT_TTL_MS, Partitioner, partition_key

__all__ = [
    "NO_TYPE",
    "XX_MESSAGE",
    "AssembledMessage",
    "IReassembler",
    "KeyResidue",
    "ReassemblyError",
    "DEFAULT_TTL_MS",
    "Partitioner",
    "partition_key",
]
