"""Cooperative cancellation token shared by all analyzers of one run."""
from __future__ import annotations

import threading

from speechqc.errors import AnalysisCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag with a generation counter.

    ``reset()`` starts a new generation so a token can be reused for the next
    analysis without a stale ``cancel()`` leaking into it.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> int:
        with self._lock:
            self._generation += 1
            self._event.clear()
            return self._generation

    def raise_if_cancelled(self, stage: str | None = None) -> None:
        if self._event.is_set():
            raise AnalysisCancelledError(stage=stage)
