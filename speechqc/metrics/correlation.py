"""Cross-channel correlation metrics."""
from __future__ import annotations

import numpy as np


def pearson_correlation(a: np.ndarray, b: np.ndarray) -> float:
    """
    Pearson correlation of two equal-length signals.

    Both signals are mean-centered first; a zero-variance input yields 0.0.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError("Expected signals of equal length.")
    if a.size == 0:
        return 0.0
    a_centered = a - np.mean(a)
    b_centered = b - np.mean(b)
    denom = float(np.sqrt(np.sum(a_centered ** 2) * np.sum(b_centered ** 2)))
    if denom <= 0:
        return 0.0
    return float(np.sum(a_centered * b_centered) / denom)


def block_correlations(
    left: np.ndarray,
    right: np.ndarray,
    starts: np.ndarray,
    ends: np.ndarray,
) -> np.ndarray:
    """Absolute Pearson correlation of two channels over each [start, end) block."""
    out = np.zeros(len(starts), dtype=np.float64)
    for i, (start, end) in enumerate(zip(starts, ends)):
        out[i] = abs(pearson_correlation(left[start:end], right[start:end]))
    return out
