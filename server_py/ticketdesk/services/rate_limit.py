from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict

from ticketdesk.core.exceptions import RateLimited


@dataclass
class _Window:
    started_at: float
    count: int = 0


class RateLimiter:
    """Fixed window counter per connection.

    The window opens with the first counted call; once more than
    ``window_seconds`` have passed since then, the next call resets the
    counter to 1. The call that pushes the counter past ``max_requests``
    raises ``RateLimited`` (it is still counted).
    """

    def __init__(
        self,
        window_seconds: float = 60,
        max_requests: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def check_limit(self, key: str) -> None:
        now = self._clock()
        window = self._windows.get(key)
        if window is None:
            window = self._windows[key] = _Window(started_at=now)
        elif now - window.started_at > self.window_seconds:
            window.started_at = now
            window.count = 0

        window.count += 1
        if window.count > self.max_requests:
            raise RateLimited()

    def cleanup(self) -> int:
        """Drop windows idle for more than two window lengths. Returns how many."""
        now = self._clock()
        stale = [
            key
            for key, window in self._windows.items()
            if now - window.started_at > self.window_seconds * 2
        ]
        for key in stale:
            del self._windows[key]
        return len(stale)

    def forget(self, key: str) -> None:
        self._windows.pop(key, None)

    def __len__(self) -> int:
        return len(self._windows)
