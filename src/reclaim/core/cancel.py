"""Cooperative cancellation for long-running scans."""

from __future__ import annotations

import threading


class CancelToken:
    """Shared flag checked between rules and periodically during walks.

    Setting the flag never interrupts a blocking call; evaluation stops at
    the next check point.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
