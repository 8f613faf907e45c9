"""Speech overlap and channel consistency for two-speaker stereo recordings."""
from __future__ import annotations

import math

import numpy as np

from speechqc.analysis.blocks import block_bounds, block_rms, block_size_for, rms_to_db
from speechqc.analysis.progress import StageProgress, silent_progress
from speechqc.thresholds.conversational import build_conversational_config
from speechqc.types import (
    ConsistencyResult,
    ConversationalReport,
    OverlapResult,
    OverlapSegment,
    SampleBuffer,
)


def speech_threshold_db(noise_floor_db: float, cfg: dict) -> float:
    """Level a channel must exceed to count as speaking."""
    floor = float(cfg["min_speech_dbfs"])
    if not math.isfinite(noise_floor_db):
        return floor
    return max(noise_floor_db + float(cfg["speech_threshold_above_noise_db"]), floor)


def overlap_segments(
    overlap: np.ndarray,
    starts: np.ndarray,
    ends: np.ndarray,
    fs: float,
    *,
    min_seconds: float = 0.0,
) -> list[OverlapSegment]:
    """Merge consecutive overlapping blocks into timed segments."""
    idx = np.flatnonzero(overlap)
    if idx.size == 0:
        return []
    breaks = np.flatnonzero(np.diff(idx) > 1)
    run_starts = np.concatenate(([0], breaks + 1))
    run_ends = np.concatenate((breaks, [idx.size - 1]))
    segments = []
    for rs, re in zip(run_starts, run_ends):
        start = float(starts[idx[rs]]) / fs
        end = float(ends[idx[re]]) / fs
        if end - start < min_seconds:
            continue
        segments.append(OverlapSegment(start=start, end=end, duration=end - start))
    return segments


def analyze_conversational(
    buffer: SampleBuffer,
    noise_floor_db: float,
    progress: StageProgress | None = None,
    *,
    config: dict | None = None,
) -> ConversationalReport | None:
    """
    Estimate cross-talk and speaker/channel consistency.

    A channel is speaking in a block when its RMS clears the noise floor by
    a configurable margin. Blocks where both channels speak are overlap;
    blocks where exactly one speaks are consistent when that channel is also
    clearly the louder one.

    Returns:
        ConversationalReport, or None unless the buffer is stereo
    """
    if buffer.channel_count != 2:
        return None
    cfg = build_conversational_config(config)
    progress = progress or silent_progress("conversational")
    fs = float(buffer.sample_rate)
    block_size = block_size_for(buffer.sample_rate, float(cfg["block_seconds"]))
    rms = block_rms(buffer.samples, block_size, progress)
    starts, ends = block_bounds(buffer.frame_count, block_size)

    threshold_db = speech_threshold_db(noise_floor_db, cfg)
    levels = rms_to_db(rms)
    speaking = levels > threshold_db
    left, right = speaking[:, 0], speaking[:, 1]
    overlap = left & right
    any_speech = left | right
    single = left ^ right

    speech_blocks = int(np.count_nonzero(any_speech))
    overlap_blocks = int(np.count_nonzero(overlap))
    overlap_pct = 100.0 * overlap_blocks / speech_blocks if speech_blocks else 0.0

    ratio = float(cfg["consistency_dominance_ratio"])
    active_rms = np.where(left, rms[:, 0], rms[:, 1])
    other_rms = np.where(left, rms[:, 1], rms[:, 0])
    consistent = single & (active_rms > ratio * other_rms)
    single_blocks = int(np.count_nonzero(single))
    consistent_blocks = int(np.count_nonzero(consistent))
    consistency_pct = 100.0 * consistent_blocks / single_blocks if single_blocks else 100.0

    return ConversationalReport(
        overlap=OverlapResult(
            overlap_percentage=float(overlap_pct),
            overlap_blocks=overlap_blocks,
            speech_blocks=speech_blocks,
            total_blocks=int(rms.shape[0]),
            overlap_segments=overlap_segments(
                overlap,
                starts,
                ends,
                fs,
                min_seconds=float(cfg["min_overlap_segment_seconds"]),
            ),
        ),
        consistency=ConsistencyResult(
            consistency_percentage=float(consistency_pct),
            consistent_blocks=consistent_blocks,
            single_speaker_blocks=single_blocks,
        ),
        speech_threshold_db=float(threshold_db),
    )
