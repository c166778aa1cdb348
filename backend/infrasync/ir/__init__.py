# IR module
# The structured declarations shared by the synthesizer, emitter, parser and reconstructor

from infrasync.ir.base import Block, Resource, InfraIR, RESOURCE, DATA, PROVIDER, VARIABLE
from infrasync.ir.errors import (
    InfraSyncError,
    MalformedSyntax,
    NameCollision,
    UnresolvedNeighbor,
    ValidationError,
)
from infrasync.ir.naming import (
    normalize_name,
    SuffixStrategy,
    HashSuffix,
    SeededSuffix,
    TimeSuffix,
)

__all__ = [
    "Block",
    "Resource",
    "InfraIR",
    "RESOURCE",
    "DATA",
    "PROVIDER",
    "VARIABLE",
    "InfraSyncError",
    "MalformedSyntax",
    "NameCollision",
    "UnresolvedNeighbor",
    "ValidationError",
    "normalize_name",
    "SuffixStrategy",
    "HashSuffix",
    "SeededSuffix",
    "TimeSuffix",
]
