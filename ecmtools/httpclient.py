"""HTTP session that applies a default timeout to every request."""

from __future__ import annotations

import requests

__all__ = ["TimeoutSession", "new_client"]


class TimeoutSession(requests.Session):
    """A requests session whose requests time out after a fixed number of seconds."""

    def __init__(self, timeout: float) -> None:
        super().__init__()
        self.timeout = timeout

    def request(self, method, url, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, **kwargs)


def new_client(timeout: float) -> TimeoutSession:
    """Return a session whose requests time out after ``timeout`` seconds."""
    return TimeoutSession(timeout)