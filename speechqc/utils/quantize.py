from __future__ import annotations
import math


def q(x: float | None, step: float) -> float | None:
    """Round to the nearest multiple of ``step``, halves away from zero.

    Non-finite values (silent-file levels are -inf) become None so report
    dictionaries stay JSON-safe.
    """
    if x is None or not math.isfinite(x):
        return None
    inv = 1.0 / step
    steps = math.floor(abs(x) * inv + 0.5)
    return (steps if x >= 0 else -steps) / inv
