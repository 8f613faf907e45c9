"""Block framing helpers shared by the block-based analyzers."""
from __future__ import annotations

import numpy as np

from speechqc.analysis.progress import CANCELLATION_CHECK_INTERVALS, StageProgress


def block_size_for(sample_rate: int, block_seconds: float) -> int:
    """Samples per block, never less than one."""
    return max(1, int(np.floor(float(sample_rate) * float(block_seconds))))


def block_bounds(frame_count: int, block_size: int) -> tuple[np.ndarray, np.ndarray]:
    """Start/end sample indices of consecutive blocks; the last may be partial."""
    starts = np.arange(0, frame_count, block_size, dtype=np.int64)
    ends = np.minimum(starts + block_size, frame_count)
    return starts, ends


def block_rms(
    samples: np.ndarray,
    block_size: int,
    progress: StageProgress,
    *,
    batch_blocks: int | None = None,
) -> np.ndarray:
    """
    RMS per block and channel for a (frames, channels) array.

    Blocks are processed in batches so the cancellation token is checked
    every ``batch_blocks`` blocks.

    Returns:
        Array shaped (blocks, channels); the final partial block is averaged
        over its true length.
    """
    x = np.asarray(samples)
    if x.ndim == 1:
        x = x.reshape(-1, 1)
    batch_blocks = batch_blocks or CANCELLATION_CHECK_INTERVALS["BLOCK_LOOP"]
    n = x.shape[0]
    starts, ends = block_bounds(n, block_size)
    total = starts.size
    out = np.zeros((total, x.shape[1]), dtype=np.float64)
    full = n // block_size
    for b0 in range(0, total, batch_blocks):
        b1 = min(b0 + batch_blocks, total)
        full_end = min(b1, full)
        if full_end > b0:
            seg = x[b0 * block_size:full_end * block_size].astype(np.float64)
            seg = seg.reshape(full_end - b0, block_size, x.shape[1])
            out[b0:full_end] = np.sqrt(np.mean(seg ** 2, axis=1))
        if b1 > full:
            tail = x[full * block_size:].astype(np.float64)
            out[full] = np.sqrt(np.mean(tail ** 2, axis=0))
        progress.update(b1 / total)
    return out


def window_rms(
    x: np.ndarray,
    window_size: int,
    progress: StageProgress | None = None,
    *,
    batch_windows: int | None = None,
    fraction_offset: float = 0.0,
    fraction_span: float = 1.0,
) -> np.ndarray:
    """RMS of consecutive full windows of a mono signal."""
    x = np.asarray(x)
    count = x.size // window_size
    if count == 0:
        return np.array([], dtype=np.float64)
    batch_windows = batch_windows or CANCELLATION_CHECK_INTERVALS["WINDOW_LOOP"]
    out = np.empty(count, dtype=np.float64)
    for w0 in range(0, count, batch_windows):
        w1 = min(w0 + batch_windows, count)
        seg = x[w0 * window_size:w1 * window_size].astype(np.float64)
        out[w0:w1] = np.sqrt(np.mean(seg.reshape(w1 - w0, window_size) ** 2, axis=1))
        if progress is not None:
            progress.update(fraction_offset + fraction_span * (w1 / count))
    return out


def rms_to_db(rms: np.ndarray | float, floor_db: float = -200.0) -> np.ndarray:
    """Convert linear RMS to dBFS, flooring zero and tiny values at ``floor_db``."""
    rms = np.asarray(rms, dtype=np.float64)
    floor_lin = 10.0 ** (floor_db / 20.0)
    return 20.0 * np.log10(np.maximum(rms, floor_lin))
