"""Cross-channel microphone bleed detection for two-speaker stereo."""
from __future__ import annotations

import numpy as np

from speechqc.analysis.blocks import block_bounds, block_rms, block_size_for, rms_to_db
from speechqc.analysis.progress import (
    CANCELLATION_CHECK_INTERVALS,
    StageProgress,
    silent_progress,
)
from speechqc.metrics.correlation import block_correlations
from speechqc.metrics.stereo import SILENCE_RMS, classify_blocks
from speechqc.types import (
    BleedLevelResult,
    BleedSeparationResult,
    MicBleedReport,
    SampleBuffer,
)

BLOCK_SECONDS = 0.25
DOMINANCE_RATIO = 1.5
BLEED_LEVEL_THRESHOLD_DB = -60.0
CONCERNING_SEPARATION_DB = 15.0
CORRELATION_THRESHOLD = 0.3
CONFIRMED_BLEED_PERCENT = 0.5
LEVEL_FLOOR_DB = -200.0
# Confirmed-bleed percentage that maps to the maximum severity score.
SEVERITY_FULL_SCALE_PERCENT = 5.0


def _mean_level_db(rms: np.ndarray) -> float:
    if rms.size == 0:
        return float("-inf")
    mean = float(np.mean(rms))
    if mean <= 0:
        return float("-inf")
    return float(20.0 * np.log10(mean))


def bleed_level(
    rms_left: np.ndarray,
    rms_right: np.ndarray,
    left_dominant: np.ndarray,
    right_dominant: np.ndarray,
    *,
    threshold_db: float = BLEED_LEVEL_THRESHOLD_DB,
) -> BleedLevelResult:
    """
    Absolute bleed level per receiving channel.

    While the left speaker dominates, whatever reaches the right channel is
    bleed into the right microphone, and vice versa. Levels are averaged in
    the linear domain before conversion to dB.
    """
    right_bleed_db = _mean_level_db(np.asarray(rms_right)[left_dominant])
    left_bleed_db = _mean_level_db(np.asarray(rms_left)[right_dominant])
    return BleedLevelResult(
        left_channel_bleed_db=left_bleed_db,
        right_channel_bleed_db=right_bleed_db,
        left_dominant_blocks=int(np.count_nonzero(left_dominant)),
        right_dominant_blocks=int(np.count_nonzero(right_dominant)),
        detected=bool(left_bleed_db > threshold_db or right_bleed_db > threshold_db),
    )


def bleed_severity_score(
    percentage_confirmed: float,
    *,
    full_scale_percent: float = SEVERITY_FULL_SCALE_PERCENT,
) -> float:
    """
    Severity on a 0-100 scale, linear in the confirmed-bleed percentage.

    A file reaches 100 once ``full_scale_percent`` of its blocks carry
    confirmed bleed; at the default detection threshold (0.5%) it scores 10.
    """
    if full_scale_percent <= 0:
        raise ValueError("full_scale_percent must be positive.")
    return float(100.0 * min(1.0, max(0.0, percentage_confirmed) / full_scale_percent))


def bleed_separation(
    buffer: SampleBuffer,
    rms: np.ndarray,
    left_dominant: np.ndarray,
    right_dominant: np.ndarray,
    block_size: int,
    progress: StageProgress,
    *,
    concerning_db: float = CONCERNING_SEPARATION_DB,
    correlation_threshold: float = CORRELATION_THRESHOLD,
    confirmed_percent: float = CONFIRMED_BLEED_PERCENT,
    full_scale_percent: float = SEVERITY_FULL_SCALE_PERCENT,
) -> BleedSeparationResult:
    """
    Dominant-to-bleed separation, confirmed by waveform correlation.

    Low separation alone also occurs with uncorrelated room noise; only
    blocks whose channels are also correlated count as confirmed bleed.
    """
    total_blocks = int(rms.shape[0])
    dominant = left_dominant | right_dominant
    dominant_idx = np.flatnonzero(dominant)
    if dominant_idx.size == 0:
        return BleedSeparationResult(
            median_separation_db=None,
            p10_separation_db=None,
            concerning_blocks=0,
            confirmed_bleed_blocks=0,
            total_blocks=total_blocks,
            percentage_confirmed_bleed=0.0,
            detected=False,
        )

    is_left = left_dominant[dominant_idx]
    dominant_rms = np.where(is_left, rms[dominant_idx, 0], rms[dominant_idx, 1])
    bleed_rms = np.where(is_left, rms[dominant_idx, 1], rms[dominant_idx, 0])
    separation = rms_to_db(dominant_rms, LEVEL_FLOOR_DB) - rms_to_db(bleed_rms, LEVEL_FLOOR_DB)

    concerning = dominant_idx[separation < concerning_db]
    starts, ends = block_bounds(buffer.frame_count, block_size)
    batch = CANCELLATION_CHECK_INTERVALS["BLOCK_LOOP"]
    confirmed = 0
    for b0 in range(0, concerning.size, batch):
        picked = concerning[b0:b0 + batch]
        correlations = block_correlations(
            buffer.channel(0),
            buffer.channel(1),
            starts[picked],
            ends[picked],
        )
        confirmed += int(np.count_nonzero(correlations > correlation_threshold))
        progress.check()
    percentage = 100.0 * confirmed / total_blocks if total_blocks else 0.0
    return BleedSeparationResult(
        median_separation_db=float(np.median(separation)),
        p10_separation_db=float(np.percentile(separation, 10)),
        concerning_blocks=int(concerning.size),
        confirmed_bleed_blocks=confirmed,
        total_blocks=total_blocks,
        percentage_confirmed_bleed=float(percentage),
        detected=bool(percentage > confirmed_percent),
        severity_score=bleed_severity_score(percentage, full_scale_percent=full_scale_percent),
    )


def detect_mic_bleed(
    buffer: SampleBuffer,
    progress: StageProgress | None = None,
    *,
    block_seconds: float = BLOCK_SECONDS,
    dominance_ratio: float = DOMINANCE_RATIO,
) -> MicBleedReport | None:
    """
    Detect one speaker's voice leaking into the other speaker's channel.

    Two methods run on the same 250 ms blocks: an absolute bleed level and a
    separation test confirmed by correlation. Either one flags the file; a
    missed bleed costs more in QC than a false alarm.

    Returns:
        MicBleedReport, or None unless the buffer is stereo
    """
    if buffer.channel_count != 2:
        return None
    progress = progress or silent_progress("mic-bleed")
    block_size = block_size_for(buffer.sample_rate, block_seconds)
    rms = block_rms(buffer.samples, block_size, progress)
    _, left_dominant, right_dominant, _ = classify_blocks(
        rms[:, 0],
        rms[:, 1],
        ratio=dominance_ratio,
        silence_rms=SILENCE_RMS,
    )
    level = bleed_level(rms[:, 0], rms[:, 1], left_dominant, right_dominant)
    separation = bleed_separation(
        buffer,
        rms,
        left_dominant,
        right_dominant,
        block_size,
        progress,
    )
    return MicBleedReport(
        level=level,
        separation=separation,
        detected=bool(level.detected or separation.detected),
    )
