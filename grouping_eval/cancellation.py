"""Cooperative cancellation for long comparisons and calibrations."""

from __future__ import annotations

import threading

from .types import GroupingEvalError


class OperationCancelled(GroupingEvalError):
    """Raised from inside a loop after its :class:`CancelToken` was set."""


class CancelToken:
    """Thread-safe flag polled between outer iterations.

    The engine itself is single-threaded; a host typically runs it in a
    worker thread and calls :meth:`cancel` from the UI thread.
    """

    def __init__(self) -> None:
        self._stop = threading.Event()

    def cancel(self) -> None:
        self._stop.set()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def raise_if_cancelled(self) -> None:
        if self._stop.is_set():
            raise OperationCancelled("operation cancelled")


def check(token: CancelToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()


__all__ = ["CancelToken", "OperationCancelled", "check"]
