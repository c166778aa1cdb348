import time
from typing import Callable, Optional


class Debouncer:
    """
    Quiescence timer for free-text edits.

    Every touch() restarts the delay; ready() turns true once no touch
    happened for `delay` seconds. The clock is injectable so callers (and
    tests) decide what "now" means.
    """

    def __init__(self, delay: float, clock: Callable[[], float] = time.monotonic):
        self.delay = delay
        self.clock = clock
        self._last_touch: Optional[float] = None

    @property
    def pending(self) -> bool:
        return self._last_touch is not None

    def touch(self) -> None:
        self._last_touch = self.clock()

    def ready(self) -> bool:
        if self._last_touch is None:
            return False
        return self.clock() - self._last_touch >= self.delay

    def cancel(self) -> None:
        self._last_touch = None
