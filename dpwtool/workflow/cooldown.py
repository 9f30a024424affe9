"""Caller-side cooldown windows and the mapper-list cache."""

import time
from collections.abc import Callable

from dpwtool.models.records import UserRecord

Clock = Callable[[], float]


class Cooldown:
    """Refuses an action again until ``window_s`` seconds have passed."""

    def __init__(self, window_s: float, clock: Clock = time.monotonic) -> None:
        self._window_s = window_s
        self._clock = clock
        self._last: float | None = None

    def remaining(self) -> float:
        if self._last is None:
            return 0.0
        return max(0.0, self._window_s - (self._clock() - self._last))

    def ready(self) -> bool:
        return self.remaining() <= 0.0

    def mark(self) -> None:
        self._last = self._clock()

    def clear(self) -> None:
        self._last = None


class UserListCache:
    """Last fetched mapper list, valid for ``ttl_s`` seconds."""

    def __init__(self, ttl_s: float, clock: Clock = time.monotonic) -> None:
        self._ttl_s = ttl_s
        self._clock = clock
        self._users: list[UserRecord] | None = None
        self._stored_at = 0.0

    def get(self) -> list[UserRecord] | None:
        if self._users is None or self._clock() - self._stored_at >= self._ttl_s:
            return None
        return list(self._users)

    def put(self, users: list[UserRecord]) -> None:
        self._users = list(users)
        self._stored_at = self._clock()

    def invalidate(self) -> None:
        self._users = None
