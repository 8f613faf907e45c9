"""Analysis orchestration for SpeechQC."""

from speechqc.analysis.cancellation import CancellationToken
from speechqc.analysis.coordinator import (
    AnalysisCoordinator,
    EXTENDED_STAGES,
    PROGRESS_STAGES,
    analyze,
)
from speechqc.analysis.progress import (
    CANCELLATION_CHECK_INTERVALS,
    StageProgress,
    scale_progress,
)
from speechqc.analysis.validation import validate_buffer

__all__ = [
    "AnalysisCoordinator",
    "CANCELLATION_CHECK_INTERVALS",
    "CancellationToken",
    "EXTENDED_STAGES",
    "PROGRESS_STAGES",
    "StageProgress",
    "analyze",
    "scale_progress",
    "validate_buffer",
]
