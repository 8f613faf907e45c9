"""Reverberation (RT60) estimation from speech onsets and decays."""
from __future__ import annotations

import numpy as np

from speechqc.analysis.blocks import rms_to_db, window_rms
from speechqc.analysis.progress import (
    CANCELLATION_CHECK_INTERVALS,
    StageProgress,
    silent_progress,
)
from speechqc.types import ReverbLabel, ReverbResult, SampleBuffer

ONSET_WINDOW_SAMPLES = 1024
ONSET_RATIO = 1.5
ONSET_MIN_RMS = 0.01
MIN_DYNAMIC_RANGE_DB = 10.0
DECAY_WINDOW_SECONDS = 0.02
DECAY_DROP_DB = 25.0
MAX_DECAY_SECONDS = 2.0

_RT60_CLASSES = (
    (0.3, ReverbLabel.EXCELLENT, "Very dry room, minimal reflections"),
    (0.5, ReverbLabel.GOOD, "Controlled room with light reflections"),
    (0.8, ReverbLabel.FAIR, "Noticeable room reverberation"),
    (1.2, ReverbLabel.POOR, "Reverberant room, speech clarity reduced"),
)


def detect_onsets(
    rms: np.ndarray,
    *,
    ratio: float = ONSET_RATIO,
    min_rms: float = ONSET_MIN_RMS,
) -> np.ndarray:
    """Indices of windows whose RMS jumps above ``ratio`` x the previous window."""
    rms = np.asarray(rms, dtype=np.float64)
    if rms.size == 0:
        return np.array([], dtype=np.int64)
    prev = np.concatenate(([0.0], rms[:-1]))
    mask = (rms > ratio * prev) & (rms > min_rms)
    return np.flatnonzero(mask)


def decay_time_seconds(
    x: np.ndarray,
    peak_index: int,
    peak_db: float,
    fs: float,
    *,
    window_seconds: float = DECAY_WINDOW_SECONDS,
    drop_db: float = DECAY_DROP_DB,
    max_seconds: float = MAX_DECAY_SECONDS,
) -> float | None:
    """
    Time from the peak sample until a window falls ``drop_db`` below the peak.

    Returns None when the level never drops far enough within ``max_seconds``.
    """
    win = max(1, int(round(window_seconds * fs)))
    stop = min(x.size, peak_index + int(round(max_seconds * fs)))
    segment = x[peak_index:stop]
    count = segment.size // win
    if count < 2:
        return None
    frames = segment[:count * win].astype(np.float64).reshape(count, win)
    levels = rms_to_db(np.sqrt(np.mean(frames ** 2, axis=1)))
    # The window holding the peak itself never ends the decay.
    below = np.flatnonzero(levels[1:] < peak_db - drop_db)
    if below.size == 0:
        return None
    return float((below[0] + 1) * win) / float(fs)


def median_rt60(candidates) -> float:
    """Median of RT60 candidates; 0.0 when there are none."""
    values = np.asarray(list(candidates), dtype=np.float64)
    if values.size == 0:
        return 0.0
    return float(np.median(values))


def classify_rt60(rt60_seconds: float) -> tuple[ReverbLabel, str]:
    """Map an RT60 estimate to a qualitative label and description."""
    if rt60_seconds <= 0:
        return ReverbLabel.NA, "Not enough decays to estimate reverberation"
    for limit, label, description in _RT60_CLASSES:
        if rt60_seconds < limit:
            return label, description
    return ReverbLabel.VERY_POOR, "Highly reverberant room, echo-like"


def rt60_candidates(
    x: np.ndarray,
    fs: float,
    noise_floor_db: float,
    progress: StageProgress | None = None,
    *,
    onset_window: int = ONSET_WINDOW_SAMPLES,
) -> list[float]:
    """Collect one RT60 candidate per usable onset of a mono signal."""
    progress = progress or silent_progress("reverb")
    x = np.asarray(x)
    rms = window_rms(x, onset_window, progress, fraction_span=0.5)
    onsets = detect_onsets(rms)
    scale = 60.0 / DECAY_DROP_DB
    candidates: list[float] = []
    batch = CANCELLATION_CHECK_INTERVALS["ONSET_LOOP"]
    for i, window_idx in enumerate(onsets):
        if i % batch == 0:
            progress.update(0.5 + 0.5 * i / onsets.size)
        start = int(window_idx) * onset_window
        window = np.abs(x[start:start + onset_window])
        peak_index = start + int(np.argmax(window))
        peak_amp = float(window.max())
        if peak_amp <= 0:
            continue
        peak_db = float(20.0 * np.log10(peak_amp))
        if peak_db <= noise_floor_db + MIN_DYNAMIC_RANGE_DB:
            continue
        decay = decay_time_seconds(x, peak_index, peak_db, fs)
        if decay is not None:
            candidates.append(decay * scale)
    progress.update(1.0)
    return candidates


def estimate_reverb(
    buffer: SampleBuffer,
    noise_floor_db: float,
    progress: StageProgress | None = None,
) -> ReverbResult:
    """Estimate RT60 on channel 0 and classify it."""
    candidates = rt60_candidates(
        buffer.channel(0),
        float(buffer.sample_rate),
        noise_floor_db,
        progress,
    )
    rt60 = median_rt60(candidates)
    label, description = classify_rt60(rt60)
    return ReverbResult(
        rt60_seconds=rt60,
        label=label,
        description=description,
        candidate_count=len(candidates),
    )
