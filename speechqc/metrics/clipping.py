"""Clipping detection metrics."""
from __future__ import annotations

import numpy as np

from speechqc.analysis.progress import (
    CANCELLATION_CHECK_INTERVALS,
    StageProgress,
    silent_progress,
)
from speechqc.types import (
    ChannelClippingStats,
    ClippingRegion,
    ClippingReport,
    ClipType,
    SampleBuffer,
)

HARD_CLIP_LEVEL = 1.0
NEAR_CLIP_LEVEL = 0.98
GAP_TOLERANCE_SAMPLES = 3
MAX_REPORTED_REGIONS = 100


def min_consecutive_samples(sample_rate: float) -> int:
    """Shortest run counted as clipping; grows with the sample rate."""
    return max(2, int(np.floor(float(sample_rate) / 20000.0)))


def _qualifying_indices(
    x: np.ndarray,
    progress: StageProgress,
    *,
    fraction_offset: float,
    fraction_span: float,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Indices, magnitudes and hard flags of samples at or above the near level."""
    chunk = CANCELLATION_CHECK_INTERVALS["SAMPLE_LOOP"]
    idx_parts = []
    mag_parts = []
    n = x.size
    for start in range(0, n, chunk):
        mag = np.abs(x[start:start + chunk])
        hits = np.flatnonzero(mag >= NEAR_CLIP_LEVEL)
        if hits.size:
            idx_parts.append(hits + start)
            mag_parts.append(mag[hits].astype(np.float64))
        progress.update(fraction_offset + fraction_span * min(start + chunk, n) / n)
    if not idx_parts:
        empty = np.array([], dtype=np.int64)
        return empty, np.array([], dtype=np.float64), np.array([], dtype=bool)
    idx = np.concatenate(idx_parts)
    mags = np.concatenate(mag_parts)
    return idx, mags, mags >= HARD_CLIP_LEVEL


def _group_runs(
    idx: np.ndarray,
    mags: np.ndarray,
    clip_type: ClipType,
    fs: float,
    *,
    channel: int,
    min_samples: int,
    gap_tolerance: int,
) -> list[ClippingRegion]:
    """Merge sorted sample indices into regions of at least ``min_samples`` hits."""
    if idx.size == 0:
        return []
    breaks = np.flatnonzero(np.diff(idx) > gap_tolerance + 1)
    run_starts = np.concatenate(([0], breaks + 1))
    run_ends = np.concatenate((breaks, [idx.size - 1]))
    counts = run_ends - run_starts + 1
    peaks = np.maximum.reduceat(mags, run_starts)

    regions: list[ClippingRegion] = []
    for rs, re, count, peak in zip(run_starts, run_ends, counts, peaks):
        if count < min_samples:
            continue
        regions.append(
            ClippingRegion(
                start_time=int(idx[rs]) / float(fs),
                end_time=(int(idx[re]) + 1) / float(fs),
                channel=int(channel),
                sample_count=int(count),
                peak_value=float(peak),
                clip_type=clip_type,
            )
        )
    return regions


def find_clipping_regions(
    x: np.ndarray,
    fs: float,
    *,
    channel: int = 0,
    min_samples: int | None = None,
    gap_tolerance: int = GAP_TOLERANCE_SAMPLES,
    progress: StageProgress | None = None,
    fraction_offset: float = 0.0,
    fraction_span: float = 1.0,
) -> list[ClippingRegion]:
    """
    Group clipped and near-clipped samples of one channel into regions.

    Full-scale samples and near-clip samples are grouped separately, so a
    short hard burst inside a long near-clip stretch yields one region of
    each type. A region survives up to ``gap_tolerance`` consecutive samples
    that are not at its level (inter-sample clipping rarely pins every
    sample) and must hold at least ``min_samples`` samples at its level.

    Args:
        x: Mono samples
        fs: Sample rate in Hz
        channel: Channel index recorded on each region
        min_samples: Minimum qualifying samples (defaults to the rate-based minimum)
        gap_tolerance: Other samples allowed inside a region

    Returns:
        Regions in time order
    """
    progress = progress or silent_progress("clipping")
    x = np.asarray(x)
    if x.size == 0:
        return []
    min_samples = min_consecutive_samples(fs) if min_samples is None else int(min_samples)
    idx, mags, hard = _qualifying_indices(
        x,
        progress,
        fraction_offset=fraction_offset,
        fraction_span=fraction_span,
    )
    grouping = dict(channel=channel, min_samples=min_samples, gap_tolerance=gap_tolerance)
    regions = _group_runs(idx[hard], mags[hard], ClipType.HARD, fs, **grouping)
    regions += _group_runs(idx[~hard], mags[~hard], ClipType.NEAR, fs, **grouping)
    return sorted(regions, key=lambda r: (r.start_time, r.clip_type != ClipType.HARD))


def _region_rank(region: ClippingRegion) -> tuple:
    return (
        0 if region.clip_type == ClipType.HARD else 1,
        -region.sample_count,
        region.start_time,
        region.channel,
    )


def detect_clipping(
    buffer: SampleBuffer,
    progress: StageProgress | None = None,
    *,
    max_regions: int = MAX_REPORTED_REGIONS,
) -> ClippingReport:
    """Detect hard and near clipping on every channel."""
    progress = progress or silent_progress("clipping")
    fs = float(buffer.sample_rate)
    n = buffer.frame_count
    channels = buffer.channel_count
    min_samples = min_consecutive_samples(fs)

    all_regions: list[ClippingRegion] = []
    channel_stats: list[ChannelClippingStats] = []
    for ch in range(channels):
        regions = find_clipping_regions(
            buffer.channel(ch),
            fs,
            channel=ch,
            min_samples=min_samples,
            progress=progress,
            fraction_offset=ch / channels,
            fraction_span=1.0 / channels,
        )
        clipped = sum(r.sample_count for r in regions if r.clip_type == ClipType.HARD)
        near = sum(r.sample_count for r in regions if r.clip_type == ClipType.NEAR)
        channel_stats.append(
            ChannelClippingStats(
                channel=ch,
                clipped_samples=int(clipped),
                clipped_percentage=100.0 * clipped / n if n else 0.0,
                near_clipped_samples=int(near),
                near_clipping_percentage=100.0 * near / n if n else 0.0,
                region_count=len(regions),
            )
        )
        all_regions.extend(regions)

    hard_regions = [r for r in all_regions if r.clip_type == ClipType.HARD]
    near_regions = [r for r in all_regions if r.clip_type == ClipType.NEAR]
    total_samples = n * channels
    clipped_total = sum(s.clipped_samples for s in channel_stats)
    near_total = sum(s.near_clipped_samples for s in channel_stats)
    avg_duration = (
        float(np.mean([r.end_time - r.start_time for r in hard_regions]))
        if hard_regions else 0.0
    )
    return ClippingReport(
        clipped_samples=int(clipped_total),
        clipped_percentage=100.0 * clipped_total / total_samples if total_samples else 0.0,
        near_clipped_samples=int(near_total),
        near_clipping_percentage=100.0 * near_total / total_samples if total_samples else 0.0,
        clipping_event_count=len(hard_regions),
        near_clipping_event_count=len(near_regions),
        max_consecutive_clipped=max((r.sample_count for r in hard_regions), default=0),
        avg_clipping_duration=avg_duration,
        min_consecutive_samples=min_samples,
        channels=channel_stats,
        regions=sorted(all_regions, key=_region_rank)[:max(0, int(max_regions))],
    )
