"""Per-request time budget helpers."""

import time
from typing import Callable, Optional

from vibesearch.core.errors import ProviderTimeout


class Deadline:
    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0


def bounded_timeout(timeout: Optional[float], default: float, provider: str) -> float:
    """Clamp a caller budget to a provider default.

    ``None`` means no caller budget. A budget already used up raises
    ProviderTimeout instead of silently falling back to the default.
    """
    if timeout is None:
        return default
    if timeout <= 0:
        raise ProviderTimeout(provider, "no time left before the search deadline")
    return min(timeout, default)
