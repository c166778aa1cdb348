"""
Instance-name normalization and disambiguation suffixes.

Object storage names are global, so synthesized bucket names carry a short
suffix. The suffix is produced by an explicit strategy object instead of an
implicit random source: the default hashes the node identity, which keeps
synthesis reproducible. Callers who want fresh names pass a seed or a clock.
"""

import hashlib
import random
import re
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

_INVALID_CHARS_RE = re.compile(r"[^a-z0-9-]+")
_HYPHEN_RUN_RE = re.compile(r"-+")

BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def normalize_name(name: str) -> str:
    """
    Lowercase, collapse anything outside [a-z0-9-] into single hyphens,
    and trim hyphens from both ends. Idempotent.
    """
    lowered = (name or "").lower()
    lowered = _INVALID_CHARS_RE.sub("-", lowered)
    lowered = _HYPHEN_RUN_RE.sub("-", lowered)
    return lowered.strip("-")


def to_base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36[rem])
    return "".join(reversed(digits))


class SuffixStrategy(ABC):
    """Produces the disambiguating suffix for a globally named resource."""

    length: int = 6

    @abstractmethod
    def suffix(self, identity: str) -> str:
        pass


class HashSuffix(SuffixStrategy):
    """Deterministic: the same identity always yields the same suffix."""

    def __init__(self, length: int = 6, salt: str = ""):
        self.length = length
        self.salt = salt

    def suffix(self, identity: str) -> str:
        digest = hashlib.sha256(f"{self.salt}{identity}".encode("utf-8")).hexdigest()
        return digest[: self.length]


class SeededSuffix(SuffixStrategy):
    """Random suffixes from a caller-supplied seed."""

    def __init__(self, seed: Optional[int] = None, length: int = 6):
        self.length = length
        self._rng = random.Random(seed)

    def suffix(self, identity: str) -> str:
        return "".join(self._rng.choice(BASE36) for _ in range(self.length))


class TimeSuffix(SuffixStrategy):
    """Base36 millisecond timestamp, trimmed to the last `length` digits."""

    def __init__(self, clock: Callable[[], float] = time.time, length: int = 8):
        self.length = length
        self._clock = clock

    def suffix(self, identity: str) -> str:
        return to_base36(int(self._clock() * 1000))[-self.length:]


def suffix_strategy_from_config(name: str, seed: Optional[str] = None) -> SuffixStrategy:
    name = (name or "hash").lower()
    if name == "random":
        return SeededSuffix(int(seed) if seed else None)
    if name == "time":
        return TimeSuffix()
    return HashSuffix(salt=seed or "")


def disambiguate(base: str, strategy: SuffixStrategy, identity: str, max_length: int = 63) -> str:
    """Append `-<suffix>` to a normalized base, keeping within `max_length`."""
    suffix = normalize_name(strategy.suffix(identity))
    room = max_length - len(suffix) - 1
    trimmed = normalize_name(base)[:room].strip("-")
    if not trimmed:
        return suffix
    return f"{trimmed}-{suffix}"
