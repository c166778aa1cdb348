from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass
class ValidationError:
    level: str
    message: str
    object_id: str


class InfraSyncError(Exception):
    """Base class for every error raised by the sync engine."""


class MalformedSyntax(InfraSyncError):
    """
    The parser could not brace-match the text or met a token it does not expect.

    Carries the character offset and 1-based line of the failure so the
    editor can show a diagnostic without discarding its last good state.
    """

    def __init__(self, message: str, offset: Optional[int] = None, line: Optional[int] = None):
        self.message = message
        self.offset = offset
        self.line = line
        location = f" (line {line})" if line is not None else ""
        super().__init__(f"{message}{location}")


class NameCollision(InfraSyncError):
    """Two resources would be emitted with the same identity."""

    def __init__(self, identity: Tuple[str, str, str], first_owner: str = "", second_owner: str = ""):
        self.identity = identity
        self.first_owner = first_owner
        self.second_owner = second_owner
        kind, type_name, instance_name = identity
        owners = ""
        if first_owner or second_owner:
            owners = f" (created for {first_owner or '?'} and {second_owner or '?'})"
        super().__init__(f'{kind} "{type_name}" "{instance_name}" emitted twice{owners}')


@dataclass
class UnresolvedNeighbor:
    """
    Not an error: records that a node had no neighbor of a required kind
    and a dedicated supporting resource was synthesized instead.
    """
    node_id: str
    required_kind: str
    fallback: str
