"""Noise floor estimation metrics."""
from __future__ import annotations

import numpy as np

from speechqc.analysis.blocks import window_rms
from speechqc.analysis.progress import StageProgress, silent_progress
from speechqc.types import SampleBuffer

HISTOGRAM_REFERENCE_RATE = 44100
HISTOGRAM_WINDOW_SECONDS = 0.05
HISTOGRAM_FLOOR_DB = -100.0
HISTOGRAM_BINS = 100


def noise_floor_quantile_db(
    buffer: SampleBuffer,
    progress: StageProgress | None = None,
    *,
    window_count: int = 100,
    quiet_fraction: float = 0.2,
) -> float:
    """
    Estimate the noise floor from the quietest windows.

    Each channel is cut into ``window_count`` equal windows; the RMS values
    of all channels are pooled and the mean of the quietest
    ``quiet_fraction`` is returned in dBFS.

    Args:
        buffer: Sample buffer to analyze
        progress: Stage progress handle (cancellation + callback)
        window_count: Windows per channel
        quiet_fraction: Fraction of quietest windows averaged

    Returns:
        Noise floor in dBFS, or -inf when the quiet windows are all zero
    """
    progress = progress or silent_progress("noise-floor")
    n = buffer.frame_count
    channels = buffer.channel_count
    window_size = max(1, n // int(window_count))
    rms_values = []
    for ch in range(channels):
        rms_values.append(
            window_rms(
                buffer.channel(ch),
                window_size,
                progress,
                fraction_offset=ch / channels,
                fraction_span=1.0 / channels,
            )
        )
    pooled = np.sort(np.concatenate(rms_values))
    if pooled.size == 0:
        return float("-inf")
    quiet_count = max(1, int(np.floor(pooled.size * float(quiet_fraction))))
    avg_quiet = float(np.mean(pooled[:quiet_count]))
    if avg_quiet <= 0:
        return float("-inf")
    return float(20.0 * np.log10(avg_quiet))


def window_level_histogram(
    buffer: SampleBuffer,
    progress: StageProgress | None = None,
    *,
    window_seconds: float = HISTOGRAM_WINDOW_SECONDS,
    reference_rate: int = HISTOGRAM_REFERENCE_RATE,
    floor_db: float = HISTOGRAM_FLOOR_DB,
    bins: int = HISTOGRAM_BINS,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Histogram of per-window RMS levels over all channels.

    The window length is derived from ``reference_rate`` rather than the
    buffer's own rate so bin populations are comparable across files.

    Returns:
        (counts, edges) as produced by ``numpy.histogram`` over
        [floor_db, 0] dB.
    """
    progress = progress or silent_progress("noise-floor-histogram")
    window_size = max(1, int(np.floor(float(window_seconds) * float(reference_rate))))
    channels = buffer.channel_count
    levels = []
    for ch in range(channels):
        data = buffer.channel(ch)
        size = window_size if data.size >= window_size else data.size
        rms = window_rms(
            data,
            size,
            progress,
            fraction_offset=ch / channels,
            fraction_span=1.0 / channels,
        )
        with np.errstate(divide="ignore"):
            db = np.where(rms > 0, 20.0 * np.log10(np.maximum(rms, 1e-300)), floor_db)
        levels.append(np.clip(db, floor_db, 0.0))
    all_levels = np.concatenate(levels) if levels else np.array([], dtype=np.float64)
    counts, edges = np.histogram(all_levels, bins=int(bins), range=(float(floor_db), 0.0))
    return counts, edges


def noise_floor_histogram_db(
    buffer: SampleBuffer,
    progress: StageProgress | None = None,
    **kwargs,
) -> float:
    """Noise floor as the center of the most populated level-histogram bin."""
    counts, edges = window_level_histogram(buffer, progress, **kwargs)
    idx = int(np.argmax(counts))
    return float((edges[idx] + edges[idx + 1]) / 2.0)
