from __future__ import annotations
from dataclasses import fields, is_dataclass
from enum import Enum

from speechqc.utils.quantize import q
from speechqc.version import __version__

DB_STEP = 0.01
FRACTION_STEP = 0.0001
SECONDS_STEP = 0.001

# Float fields quantized with something other than DB_STEP.
_FRACTION_FIELDS = {
    "confidence",
    "left_pct",
    "right_pct",
    "balanced_pct",
    "peak_value",
}
_SECONDS_FIELDS = {
    "rt60_seconds",
    "leading_seconds",
    "trailing_seconds",
    "longest_gap_seconds",
    "duration_seconds",
    "start_time",
    "end_time",
    "avg_clipping_duration",
    "start",
    "end",
    "duration",
}


def _convert(name: str, value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool) or isinstance(value, int):
        return value
    if isinstance(value, float):
        if name in _FRACTION_FIELDS:
            return q(value, FRACTION_STEP)
        if name in _SECONDS_FIELDS:
            return q(value, SECONDS_STEP)
        return q(value, DB_STEP)
    if is_dataclass(value):
        return {f.name: _convert(f.name, getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple)):
        return [_convert(name, v) for v in value]
    return value


def build_report_dict(report) -> dict:
    """
    Convert an AnalysisReport into JSON-ready dictionaries.

    Enums become their string values, infinities become None, and floats are
    quantized (dB to 0.01, fractions to 0.0001, seconds to 0.001) so repeated
    runs serialize identically.

    Args:
        report: AnalysisReport produced by the coordinator

    Returns:
        Dictionary with an ``engine`` header and a ``metrics`` body
    """
    return {
        "schema_version": "1.0",
        "engine": {"name": "speechqc", "version": __version__},
        "metrics": _convert("metrics", report),
    }
