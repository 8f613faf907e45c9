"""Peak level and normalization metrics."""
from __future__ import annotations

import numpy as np

from speechqc.analysis.progress import (
    CANCELLATION_CHECK_INTERVALS,
    StageProgress,
    silent_progress,
)
from speechqc.types import NormalizationResult, NormalizationStatus, SampleBuffer

NORMALIZATION_TARGET_DB = -6.0
NORMALIZATION_TOLERANCE_DB = 0.1


def amplitude_to_db(value: float) -> float:
    """Convert a linear amplitude to dBFS; zero maps to -inf."""
    if value <= 0:
        return float("-inf")
    return float(20.0 * np.log10(value))


def peak_amplitude(
    buffer: SampleBuffer,
    progress: StageProgress | None = None,
) -> float:
    """Maximum absolute sample over all channels."""
    progress = progress or silent_progress("peak-levels")
    chunk = CANCELLATION_CHECK_INTERVALS["SAMPLE_LOOP"]
    channels = buffer.channel_count
    n = buffer.frame_count
    total = channels * n
    peak = 0.0
    for ch in range(channels):
        data = buffer.channel(ch)
        for start in range(0, n, chunk):
            block = data[start:start + chunk]
            block_peak = float(np.max(np.abs(block)))
            if block_peak > peak:
                peak = block_peak
            progress.update((ch * n + start + block.size) / total)
    return peak


def peak_level_db(
    buffer: SampleBuffer,
    progress: StageProgress | None = None,
) -> float:
    """Global sample peak in dBFS across all channels."""
    return amplitude_to_db(peak_amplitude(buffer, progress))


def check_normalization(
    peak_db: float,
    *,
    target_db: float = NORMALIZATION_TARGET_DB,
    tolerance_db: float = NORMALIZATION_TOLERANCE_DB,
) -> NormalizationResult:
    """Classify a peak level against the normalization target."""
    target_txt = f"{target_db:g}dB"
    if abs(peak_db - target_db) <= tolerance_db:
        return NormalizationResult(
            status=NormalizationStatus.NORMALIZED,
            peak_db=peak_db,
            target_db=target_db,
            message=f"Properly normalized to {target_txt}",
        )
    if peak_db > target_db:
        return NormalizationResult(
            status=NormalizationStatus.TOO_LOUD,
            peak_db=peak_db,
            target_db=target_db,
            message=f"Too loud: {peak_db:.1f}dB (target: {target_txt})",
        )
    return NormalizationResult(
        status=NormalizationStatus.TOO_QUIET,
        peak_db=peak_db,
        target_db=target_db,
        message=f"Too quiet: {peak_db:.1f}dB (target: {target_txt})",
    )
