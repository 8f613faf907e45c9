from __future__ import annotations

import numpy as np

from speechqc.analysis.progress import StageProgress
from speechqc.metrics.levels import (
    amplitude_to_db,
    check_normalization,
    peak_amplitude,
    peak_level_db,
)
from speechqc.types import NormalizationStatus
from tests.conftest import db_to_amp, mono, noise, silence, stereo


def test_amplitude_to_db_reference_points():
    assert amplitude_to_db(1.0) == 0.0
    assert np.isclose(amplitude_to_db(0.5), -6.0206, atol=1e-4)
    assert amplitude_to_db(0.0) == float("-inf")


def test_peak_level_spans_all_channels():
    left = np.zeros(1000)
    right = np.zeros(1000)
    left[10] = 0.25
    right[500] = -0.5
    buf = stereo(left, right, 8000)
    assert np.isclose(peak_amplitude(buf), 0.5)
    assert np.isclose(peak_level_db(buf), -6.0206, atol=1e-4)


def test_peak_level_silent_buffer_is_negative_infinity():
    assert peak_level_db(mono(silence(1.0, 8000), 8000)) == float("-inf")


def test_peak_progress_reaches_stage_end():
    calls = []
    progress = StageProgress(
        "peak-levels",
        "Analyzing peak levels...",
        callback=lambda msg, value: calls.append(value),
        start=0.0,
        end=0.5,
    )
    peak_amplitude(mono(np.full(25_000, 0.1), 8000), progress)
    assert len(calls) == 3
    assert np.isclose(calls[-1], 0.5)
    assert all(b >= a for a, b in zip(calls, calls[1:]))


def test_normalization_within_tolerance():
    result = check_normalization(amplitude_to_db(db_to_amp(-6.05)))
    assert result.status == NormalizationStatus.NORMALIZED
    assert result.message == "Properly normalized to -6dB"


def test_normalization_too_loud_message():
    result = check_normalization(-3.0)
    assert result.status == NormalizationStatus.TOO_LOUD
    assert result.message == "Too loud: -3.0dB (target: -6dB)"


def test_normalization_too_quiet_message():
    result = check_normalization(-20.04)
    assert result.status == NormalizationStatus.TOO_QUIET
    assert result.message == "Too quiet: -20.0dB (target: -6dB)"


def test_normalization_silent_file_is_too_quiet():
    result = check_normalization(float("-inf"))
    assert result.status == NormalizationStatus.TOO_QUIET


def test_normalization_custom_target():
    result = check_normalization(-1.0, target_db=-1.0, tolerance_db=0.5)
    assert result.status == NormalizationStatus.NORMALIZED
    assert result.message == "Properly normalized to -1dB"


def test_peak_level_is_deterministic():
    buf = mono(noise(3.0, 48_000, -20.0, seed=7), 48_000)
    assert peak_level_db(buf) == peak_level_db(buf)
