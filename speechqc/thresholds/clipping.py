"""Clipping severity thresholds."""
from __future__ import annotations

from speechqc.types import ClippingReport, Status

DEFAULT_CLIPPING_THRESHOLDS = {
    "fail": {"clipped_percentage": 1.0, "event_count": 50},
    "warn": {
        "clipped_percentage": 0.1,
        "event_count": 10,
        "near_clipping_percentage": 1.0,
        "any_hard_clipping": True,
    },
}


def _merge_config(base: dict, overrides: dict | None) -> dict:
    if not overrides:
        return base
    merged = {**base}
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge_config(base[key], value)
        else:
            merged[key] = value
    return merged


def build_clipping_thresholds(overrides: dict | None = None) -> dict:
    """Return merged clipping thresholds with defaults applied."""
    return _merge_config(DEFAULT_CLIPPING_THRESHOLDS, overrides)


def clipping_severity(report: ClippingReport, thresholds: dict | None = None) -> Status:
    """Grade a clipping report; FAIL corresponds to an error-level defect."""
    cfg = build_clipping_thresholds(thresholds)
    fail = cfg["fail"]
    warn = cfg["warn"]
    if (
        report.clipped_percentage > float(fail["clipped_percentage"])
        or report.clipping_event_count > int(fail["event_count"])
    ):
        return Status.FAIL
    has_hard = report.clipping_event_count > 0 or report.clipped_samples > 0
    if (
        report.clipped_percentage > float(warn["clipped_percentage"])
        or report.clipping_event_count > int(warn["event_count"])
        or (bool(warn["any_hard_clipping"]) and has_hard)
        or report.near_clipping_percentage > float(warn["near_clipping_percentage"])
    ):
        return Status.WARN
    return Status.PASS


def evaluate_clipping(report: ClippingReport, *, thresholds: dict | None = None) -> list[dict]:
    """Evaluate clipping metrics and return flags for WARN/FAIL outcomes."""
    status = clipping_severity(report, thresholds)
    if status == Status.PASS:
        return []
    return [
        {
            "rule_id": "clipping",
            "status": status.value,
            "measurements": {
                "clipped_percentage": report.clipped_percentage,
                "clipping_event_count": report.clipping_event_count,
                "near_clipping_percentage": report.near_clipping_percentage,
                "max_consecutive_clipped": report.max_consecutive_clipped,
            },
        }
    ]
