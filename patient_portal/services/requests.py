from __future__ import annotations

import itertools


class RequestSequence:
    """Monotonic request tokens; only the latest issued token is current.

    A view takes a token before awaiting a fetch and applies the response only
    if the token is still current once the fetch returns. ``invalidate`` makes
    every outstanding token stale, which is how a closed dialog drops whatever
    it still has in flight.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest = 0

    def issue(self) -> int:
        self._latest = next(self._counter)
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest

    def invalidate(self) -> None:
        self._latest = next(self._counter)
