"""Leading, trailing and internal silence metrics."""
from __future__ import annotations

import math

import numpy as np

from speechqc.analysis.progress import (
    CANCELLATION_CHECK_INTERVALS,
    StageProgress,
    silent_progress,
)
from speechqc.types import SampleBuffer, SilenceResult

CHUNK_SECONDS = 0.05
MIN_SOUND_SECONDS = 0.150
THRESHOLD_FRACTION = 0.25


def silence_threshold_db(
    peak_db: float,
    noise_floor_db: float,
    *,
    fraction: float = THRESHOLD_FRACTION,
) -> float:
    """Level ``fraction`` of the way from the noise floor up to the peak."""
    if not math.isfinite(noise_floor_db):
        return noise_floor_db
    span = peak_db - noise_floor_db
    if not span > 0:
        span = 0.0
    return noise_floor_db + fraction * span


def chunk_peaks(
    buffer: SampleBuffer,
    chunk_size: int,
    progress: StageProgress,
) -> np.ndarray:
    """Max absolute sample over all channels for each chunk."""
    n = buffer.frame_count
    starts = np.arange(0, n, chunk_size, dtype=np.int64)
    peaks = np.empty(starts.size, dtype=np.float64)
    batch = CANCELLATION_CHECK_INTERVALS["CHUNK_LOOP"]
    for c0 in range(0, starts.size, batch):
        c1 = min(c0 + batch, starts.size)
        seg = np.abs(buffer.samples[starts[c0]:min(n, c1 * chunk_size)])
        frame_peaks = seg.max(axis=1)
        peaks[c0:c1] = np.maximum.reduceat(frame_peaks, starts[c0:c1] - starts[c0])
        progress.update(c1 / starts.size)
    return peaks


def _runs(flags: np.ndarray) -> list[tuple[bool, int, int]]:
    """Collapse a boolean sequence into (value, start, stop) runs."""
    if flags.size == 0:
        return []
    change = np.flatnonzero(np.diff(flags.astype(np.int8))) + 1
    starts = np.concatenate(([0], change))
    stops = np.concatenate((change, [flags.size]))
    return [(bool(flags[s]), int(s), int(e)) for s, e in zip(starts, stops)]


def remove_short_islands(sound: np.ndarray, min_chunks: int) -> np.ndarray:
    """Reclassify runs of sound shorter than ``min_chunks`` as silence."""
    out = np.array(sound, dtype=bool, copy=True)
    for value, start, stop in _runs(out):
        if value and stop - start < min_chunks:
            out[start:stop] = False
    return out


def digital_silence_percentage(buffer: SampleBuffer) -> float:
    """Percentage of frames that are exactly zero on every channel."""
    if buffer.frame_count == 0:
        return 0.0
    zero_frames = int(np.count_nonzero(np.all(buffer.samples == 0, axis=1)))
    return 100.0 * zero_frames / buffer.frame_count


def analyze_silence(
    buffer: SampleBuffer,
    peak_db: float,
    noise_floor_db: float,
    progress: StageProgress | None = None,
    *,
    chunk_seconds: float = CHUNK_SECONDS,
    min_sound_seconds: float = MIN_SOUND_SECONDS,
) -> SilenceResult:
    """
    Measure leading, trailing and longest internal silence.

    A chunk is sound when any channel's peak inside it exceeds a threshold
    placed a quarter of the way from the noise floor to the file peak.
    Sound runs shorter than ``min_sound_seconds`` (clicks, breaths) are
    treated as silence before the runs are measured.

    Args:
        buffer: Sample buffer to analyze
        peak_db: Global peak in dBFS
        noise_floor_db: Histogram noise floor in dBFS
        progress: Stage progress handle
        chunk_seconds: Chunk length
        min_sound_seconds: Shortest run kept as sound

    Returns:
        SilenceResult with durations in seconds
    """
    progress = progress or silent_progress("silence")
    fs = float(buffer.sample_rate)
    n = buffer.frame_count
    threshold_db = silence_threshold_db(peak_db, noise_floor_db)
    threshold = 10.0 ** (threshold_db / 20.0) if math.isfinite(threshold_db) else 0.0

    chunk_size = max(1, int(round(chunk_seconds * fs)))
    min_chunks = max(1, int(math.ceil(round(min_sound_seconds / chunk_seconds, 6))))
    sound = remove_short_islands(chunk_peaks(buffer, chunk_size, progress) > threshold, min_chunks)

    runs = _runs(sound)
    duration = n / fs
    digital = digital_silence_percentage(buffer)

    def _seconds(start: int, stop: int) -> float:
        return (min(stop * chunk_size, n) - start * chunk_size) / fs

    if not any(value for value, _, _ in runs):
        return SilenceResult(
            leading_seconds=duration,
            trailing_seconds=duration,
            longest_gap_seconds=0.0,
            threshold_db=threshold_db,
            digital_silence_percentage=digital,
        )

    leading = _seconds(runs[0][1], runs[0][2]) if not runs[0][0] else 0.0
    trailing = _seconds(runs[-1][1], runs[-1][2]) if not runs[-1][0] else 0.0
    gaps = [
        _seconds(start, stop)
        for value, start, stop in runs[1:-1]
        if not value
    ]
    return SilenceResult(
        leading_seconds=float(leading),
        trailing_seconds=float(trailing),
        longest_gap_seconds=float(max(gaps, default=0.0)),
        threshold_db=float(threshold_db),
        digital_silence_percentage=digital,
    )
