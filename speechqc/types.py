from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence
import numpy as np

from speechqc.errors import InvalidBufferError


class Status(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


class NormalizationStatus(str, Enum):
    NORMALIZED = "normalized"
    TOO_LOUD = "too_loud"
    TOO_QUIET = "too_quiet"


class ReverbLabel(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    VERY_POOR = "Very Poor"
    NA = "N/A"


class StereoType(str, Enum):
    MONO_AS_STEREO = "Mono as Stereo"
    CONVERSATIONAL = "Conversational Stereo"
    MONO_LEFT = "Mono in Left Channel"
    MONO_RIGHT = "Mono in Right Channel"
    MIXED = "Mixed Stereo"
    SILENT = "Silent"


class ClipType(str, Enum):
    HARD = "hard"
    NEAR = "near"


@dataclass(frozen=True)
class SampleBuffer:
    """Decoded audio shaped (frames, channels)."""
    samples: np.ndarray
    sample_rate: int

    @classmethod
    def from_channels(
        cls,
        channels: Sequence[Sequence[float]],
        sample_rate: int,
    ) -> SampleBuffer:
        """Build a buffer from a list of per-channel sample sequences."""
        arrays = [np.asarray(ch, dtype=np.float32) for ch in channels]
        if not arrays:
            raise InvalidBufferError("Buffer has no channels.")
        lengths = {a.shape[0] for a in arrays}
        if len(lengths) != 1:
            raise InvalidBufferError(
                f"Channel lengths differ: {sorted(lengths)}."
            )
        return cls(samples=np.stack(arrays, axis=1), sample_rate=int(sample_rate))

    @property
    def channel_count(self) -> int:
        return int(self.samples.shape[1]) if self.samples.ndim == 2 else 0

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frame_count / float(self.sample_rate)

    def channel(self, index: int) -> np.ndarray:
        return self.samples[:, index]


@dataclass(frozen=True)
class NormalizationResult:
    status: NormalizationStatus
    peak_db: float
    target_db: float
    message: str


@dataclass(frozen=True)
class ReverbResult:
    rt60_seconds: float
    label: ReverbLabel
    description: str
    candidate_count: int = 0


@dataclass(frozen=True)
class SilenceResult:
    leading_seconds: float
    trailing_seconds: float
    longest_gap_seconds: float
    threshold_db: float
    digital_silence_percentage: float = 0.0


@dataclass(frozen=True)
class ClippingRegion:
    start_time: float
    end_time: float
    channel: int
    sample_count: int
    peak_value: float
    clip_type: ClipType


@dataclass(frozen=True)
class ChannelClippingStats:
    channel: int
    clipped_samples: int
    clipped_percentage: float
    near_clipped_samples: int
    near_clipping_percentage: float
    region_count: int


@dataclass(frozen=True)
class ClippingReport:
    clipped_samples: int
    clipped_percentage: float
    near_clipped_samples: int
    near_clipping_percentage: float
    clipping_event_count: int
    near_clipping_event_count: int
    max_consecutive_clipped: int
    avg_clipping_duration: float
    min_consecutive_samples: int
    channels: list[ChannelClippingStats] = field(default_factory=list)
    regions: list[ClippingRegion] = field(default_factory=list)


@dataclass(frozen=True)
class StereoReport:
    stereo_type: StereoType
    confidence: float
    total_blocks: int
    active_blocks: int
    silent_blocks: int
    left_dominant_blocks: int
    right_dominant_blocks: int
    balanced_blocks: int
    left_pct: float
    right_pct: float
    balanced_pct: float


@dataclass(frozen=True)
class BleedLevelResult:
    """Absolute bleed level per receiving channel."""
    left_channel_bleed_db: float
    right_channel_bleed_db: float
    left_dominant_blocks: int
    right_dominant_blocks: int
    detected: bool


@dataclass(frozen=True)
class BleedSeparationResult:
    """Dominant-to-bleed separation with correlation confirmation."""
    median_separation_db: float | None
    p10_separation_db: float | None
    concerning_blocks: int
    confirmed_bleed_blocks: int
    total_blocks: int
    percentage_confirmed_bleed: float
    detected: bool
    severity_score: float = 0.0


@dataclass(frozen=True)
class MicBleedReport:
    level: BleedLevelResult
    separation: BleedSeparationResult
    detected: bool


@dataclass(frozen=True)
class OverlapSegment:
    start: float
    end: float
    duration: float


@dataclass(frozen=True)
class OverlapResult:
    overlap_percentage: float
    overlap_blocks: int
    speech_blocks: int
    total_blocks: int
    overlap_segments: list[OverlapSegment] = field(default_factory=list)

    @property
    def longest_segment(self) -> float:
        return max((seg.duration for seg in self.overlap_segments), default=0.0)


@dataclass(frozen=True)
class ConsistencyResult:
    consistency_percentage: float
    consistent_blocks: int
    single_speaker_blocks: int


@dataclass(frozen=True)
class ConversationalReport:
    overlap: OverlapResult
    consistency: ConsistencyResult
    speech_threshold_db: float


@dataclass(frozen=True)
class AnalysisReport:
    sample_rate: int
    channel_count: int
    duration_seconds: float
    peak_db: float
    noise_floor_db: float
    normalization: NormalizationResult
    noise_floor_histogram_db: float | None = None
    reverb: ReverbResult | None = None
    silence: SilenceResult | None = None
    clipping: ClippingReport | None = None
    stereo_separation: StereoReport | None = None
    mic_bleed: MicBleedReport | None = None
    conversational: ConversationalReport | None = None

    def to_dict(self) -> dict:
        from speechqc.reporting.report import build_report_dict
        return build_report_dict(self)
