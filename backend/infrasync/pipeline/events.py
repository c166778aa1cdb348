import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class UpdateOrigin(Enum):
    USER = "user"
    SYNTHESIS = "synthesis"


@dataclass(frozen=True)
class TextUpdate:
    text: str
    origin: UpdateOrigin = UpdateOrigin.USER
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class Diagnostic:
    """Non-blocking problem shown next to the editor."""
    stage: str  # parse | synthesis
    message: str
    line: Optional[int] = None
