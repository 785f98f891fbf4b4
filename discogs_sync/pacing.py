from __future__ import annotations

import time
from typing import Callable


class MinIntervalGate:
    """
    Enforce a minimum interval between successive calls to ``wait()``.

    Clients call ``wait()`` right before each request; the first call never
    sleeps. ``clock`` and ``sleep`` are injectable so tests run without delays.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._last_call_ts = None

    @classmethod
    def per_second(cls, calls_per_second: float, **kwargs) -> "MinIntervalGate":
        return cls(1.0 / max(0.1, calls_per_second), **kwargs)

    def wait(self) -> float:
        """Block until the interval has elapsed; return the time slept."""
        slept = 0.0
        if self._last_call_ts is not None:
            elapsed = self._clock() - self._last_call_ts
            if elapsed < self.min_interval:
                slept = self.min_interval - elapsed
                self._sleep(slept)
        self._last_call_ts = self._clock()
        return slept


def no_wait() -> MinIntervalGate:
    """A gate that never sleeps."""
    return MinIntervalGate(0.0)
