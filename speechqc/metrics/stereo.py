"""Stereo separation (channel dominance) classification."""
from __future__ import annotations

import numpy as np

from speechqc.analysis.blocks import block_rms, block_size_for
from speechqc.analysis.progress import StageProgress, silent_progress
from speechqc.types import SampleBuffer, StereoReport, StereoType

BLOCK_SECONDS = 0.25
DOMINANCE_RATIO = 1.1
SILENCE_RMS = 0.001


def classify_blocks(
    rms_left: np.ndarray,
    rms_right: np.ndarray,
    *,
    ratio: float = DOMINANCE_RATIO,
    silence_rms: float = SILENCE_RMS,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Boolean masks (silent, left, right, balanced) for each block."""
    rms_left = np.asarray(rms_left, dtype=np.float64)
    rms_right = np.asarray(rms_right, dtype=np.float64)
    silent = (rms_left < silence_rms) & (rms_right < silence_rms)
    block_ratio = np.divide(
        rms_left,
        rms_right,
        out=np.full_like(rms_left, np.inf),
        where=rms_right > 0,
    )
    left = ~silent & (block_ratio > ratio)
    right = ~silent & (block_ratio < 1.0 / ratio)
    balanced = ~silent & ~left & ~right
    return silent, left, right, balanced


def classify_stereo_type(
    left_pct: float,
    right_pct: float,
    balanced_pct: float,
) -> tuple[StereoType, float]:
    """Stereo type label and confidence from active-block fractions."""
    if balanced_pct > 0.9:
        return StereoType.MONO_AS_STEREO, balanced_pct
    if left_pct > 0.1 and right_pct > 0.1:
        return StereoType.CONVERSATIONAL, left_pct + right_pct
    if left_pct > 0.9:
        return StereoType.MONO_LEFT, left_pct
    if right_pct > 0.9:
        return StereoType.MONO_RIGHT, right_pct
    return StereoType.MIXED, 1.0 - balanced_pct


def analyze_stereo_separation(
    buffer: SampleBuffer,
    progress: StageProgress | None = None,
    *,
    block_seconds: float = BLOCK_SECONDS,
) -> StereoReport | None:
    """Classify how speech is distributed across the two channels; None unless stereo."""
    if buffer.channel_count != 2:
        return None
    progress = progress or silent_progress("stereo-separation")
    block_size = block_size_for(buffer.sample_rate, block_seconds)
    rms = block_rms(buffer.samples, block_size, progress)
    silent, left, right, balanced = classify_blocks(rms[:, 0], rms[:, 1])

    total = int(rms.shape[0])
    silent_count = int(np.count_nonzero(silent))
    left_count = int(np.count_nonzero(left))
    right_count = int(np.count_nonzero(right))
    balanced_count = int(np.count_nonzero(balanced))
    active = total - silent_count

    if active > 0:
        left_pct = left_count / active
        right_pct = right_count / active
        balanced_pct = balanced_count / active
        stereo_type, confidence = classify_stereo_type(left_pct, right_pct, balanced_pct)
    else:
        left_pct = right_pct = balanced_pct = 0.0
        stereo_type, confidence = StereoType.SILENT, 1.0

    return StereoReport(
        stereo_type=stereo_type,
        confidence=float(min(confidence, 1.0)),
        total_blocks=total,
        active_blocks=active,
        silent_blocks=silent_count,
        left_dominant_blocks=left_count,
        right_dominant_blocks=right_count,
        balanced_blocks=balanced_count,
        left_pct=float(left_pct),
        right_pct=float(right_pct),
        balanced_pct=float(balanced_pct),
    )
