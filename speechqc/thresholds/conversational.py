"""Tunable parameters for conversational overlap and consistency analysis."""
from __future__ import annotations

DEFAULT_CONVERSATIONAL_CONFIG = {
    "block_seconds": 0.25,
    "speech_threshold_above_noise_db": 20.0,
    "min_speech_dbfs": -60.0,
    "min_overlap_segment_seconds": 0.0,
    "consistency_dominance_ratio": 1.5,
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


def build_conversational_config(overrides: dict | None = None) -> dict:
    """Return merged conversational analysis configuration with defaults applied."""
    cfg = _merge_config(DEFAULT_CONVERSATIONAL_CONFIG, overrides)
    unknown = set(cfg) - set(DEFAULT_CONVERSATIONAL_CONFIG)
    if unknown:
        raise ValueError(f"Unknown conversational config keys: {sorted(unknown)}")
    if float(cfg["block_seconds"]) <= 0:
        raise ValueError("block_seconds must be positive.")
    if float(cfg["consistency_dominance_ratio"]) < 1.0:
        raise ValueError("consistency_dominance_ratio must be >= 1.")
    return cfg
