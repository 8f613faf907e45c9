"""
SpeechQC - Speech Recording Quality Control Engine

Computes level, noise, reverberation, silence, clipping, stereo separation
and microphone bleed metrics from decoded speech audio.
"""
from speechqc.version import __version__
from speechqc.errors import AnalysisCancelledError, InvalidBufferError
from speechqc.types import (
    Status,
    NormalizationStatus,
    ReverbLabel,
    StereoType,
    ClipType,
    SampleBuffer,
    AnalysisReport,
)
from speechqc.analysis import (
    AnalysisCoordinator,
    CancellationToken,
    analyze,
)

__all__ = [
    "__version__",
    "AnalysisCancelledError",
    "InvalidBufferError",
    "Status",
    "NormalizationStatus",
    "ReverbLabel",
    "StereoType",
    "ClipType",
    "SampleBuffer",
    "AnalysisReport",
    "AnalysisCoordinator",
    "CancellationToken",
    "analyze",
]
