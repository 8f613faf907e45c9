from __future__ import annotations

import numpy as np

from speechqc.metrics.silence import (
    analyze_silence,
    digital_silence_percentage,
    remove_short_islands,
    silence_threshold_db,
)
from tests.conftest import constant, mono, noise, silence, stereo

PEAK_DB = 20.0 * np.log10(0.5)


def test_threshold_quarter_of_dynamic_range():
    assert np.isclose(silence_threshold_db(0.0, -60.0), -45.0)


def test_threshold_degenerate_inputs():
    assert silence_threshold_db(0.0, float("-inf")) == float("-inf")
    assert silence_threshold_db(-50.0, -40.0) == -40.0


def test_remove_short_islands():
    sound = np.array([0, 1, 0, 1, 1, 1, 0, 1, 1], dtype=bool)
    out = remove_short_islands(sound, 3)
    assert out.tolist() == [False, False, False, True, True, True, False, False, False]


def test_leading_trailing_and_gap():
    fs = 1000
    x = np.concatenate([
        silence(1.0, fs),
        constant(1.0, fs, 0.5),
        silence(0.5, fs),
        constant(1.0, fs, 0.5),
        silence(2.0, fs),
    ])
    result = analyze_silence(mono(x, fs), PEAK_DB, -100.0)
    assert np.isclose(result.leading_seconds, 1.0)
    assert np.isclose(result.trailing_seconds, 2.0)
    assert np.isclose(result.longest_gap_seconds, 0.5)
    assert np.isclose(result.digital_silence_percentage, 100.0 * 3.5 / 5.5)


def test_short_click_counts_as_silence():
    fs = 1000
    x = np.concatenate([
        silence(1.0, fs),
        constant(0.01, fs, 0.5),
        silence(0.99, fs),
        constant(1.0, fs, 0.5),
        silence(0.5, fs),
    ])
    result = analyze_silence(mono(x, fs), PEAK_DB, -100.0)
    assert np.isclose(result.leading_seconds, 2.0)
    assert np.isclose(result.trailing_seconds, 0.5)
    assert result.longest_gap_seconds == 0.0


def test_sound_on_either_channel_is_sound():
    fs = 1000
    left = np.concatenate([constant(1.0, fs, 0.5), silence(1.0, fs)])
    right = np.concatenate([silence(1.0, fs), constant(1.0, fs, 0.5)])
    result = analyze_silence(stereo(left, right, fs), PEAK_DB, -100.0)
    assert result.leading_seconds == 0.0
    assert result.trailing_seconds == 0.0
    assert result.longest_gap_seconds == 0.0


def test_all_silent_buffer():
    fs = 8000
    result = analyze_silence(mono(silence(3.0, fs), fs), float("-inf"), float("-inf"))
    assert np.isclose(result.leading_seconds, 3.0)
    assert np.isclose(result.trailing_seconds, 3.0)
    assert result.longest_gap_seconds == 0.0
    assert result.digital_silence_percentage == 100.0


def test_low_noise_below_threshold_is_silence():
    fs = 8000
    x = np.concatenate([
        noise(1.0, fs, -70.0, seed=3),
        constant(1.0, fs, 0.5),
        noise(1.0, fs, -70.0, seed=4),
    ])
    result = analyze_silence(mono(x, fs), PEAK_DB, -70.0)
    assert np.isclose(result.leading_seconds, 1.0)
    assert np.isclose(result.trailing_seconds, 1.0)
    assert result.digital_silence_percentage == 0.0


def test_digital_silence_requires_all_channels_zero():
    left = np.array([0.0, 0.0, 0.1, 0.0])
    right = np.array([0.0, 0.2, 0.0, 0.0])
    assert np.isclose(digital_silence_percentage(stereo(left, right, 8000)), 50.0)
