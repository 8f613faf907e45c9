"""Per-stage progress reporting, cancellation checks and cooperative yielding."""
from __future__ import annotations

import time
from typing import Callable

from speechqc.analysis.cancellation import CancellationToken

ProgressCallback = Callable[[str, float], None]

CANCELLATION_CHECK_INTERVALS = {
    "SAMPLE_LOOP": 10_000,
    "WINDOW_LOOP": 1_000,
    "BLOCK_LOOP": 100,
    "ONSET_LOOP": 100,
    "CHUNK_LOOP": 1_000,
}


def scale_progress(fraction: float, start: float, end: float) -> float:
    """Map a stage-local fraction in [0, 1] onto the global range [start, end]."""
    fraction = min(max(float(fraction), 0.0), 1.0)
    return start + fraction * (end - start)


class StageProgress:
    """
    Handle passed into an analyzer for one pipeline stage.

    ``update(fraction)`` checks the cancellation token, forwards a scaled
    progress value to the callback and yields to other threads every
    ``yield_every`` calls. Analyzers call it once per chunk, window batch,
    block batch or onset batch.
    """

    def __init__(
        self,
        stage: str,
        message: str,
        *,
        token: CancellationToken | None = None,
        callback: ProgressCallback | None = None,
        start: float = 0.0,
        end: float = 1.0,
        yield_every: int = 10,
    ) -> None:
        self.stage = stage
        self.message = message
        self.token = token if token is not None else CancellationToken()
        self.callback = callback
        self.start = float(start)
        self.end = float(end)
        self.yield_every = max(1, int(yield_every))
        self._updates = 0
        self._last = self.start

    def check(self) -> None:
        self.token.raise_if_cancelled(self.stage)

    def begin(self) -> None:
        self._emit(self.start)
        self.check()

    def update(self, fraction: float) -> None:
        self.check()
        value = scale_progress(fraction, self.start, self.end)
        self._emit(value)
        self._updates += 1
        if self._updates % self.yield_every == 0:
            time.sleep(0)
        self.check()

    def _emit(self, value: float) -> None:
        # Keep reported progress monotonic within the stage.
        value = max(value, self._last)
        self._last = value
        if self.callback is not None:
            self.callback(self.message, value)


def silent_progress(stage: str) -> StageProgress:
    """Progress handle for direct analyzer calls outside the coordinator."""
    return StageProgress(stage, "")
