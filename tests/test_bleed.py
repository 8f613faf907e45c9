from __future__ import annotations

import numpy as np
import pytest

from speechqc.metrics.bleed import bleed_level, bleed_severity_score, detect_mic_bleed
from tests.conftest import mono, noise, silence, stereo

FS = 16_000


def test_mono_buffer_has_no_bleed_report():
    assert detect_mic_bleed(mono(silence(1.0, FS), FS)) is None


def test_bleed_level_averages_linear_rms():
    rms_l = np.array([0.1, 0.1, 0.0, 0.0])
    rms_r = np.array([0.001, 0.003, 0.1, 0.1])
    left_dom = np.array([True, True, False, False])
    right_dom = np.array([False, False, True, True])
    result = bleed_level(rms_l, rms_r, left_dom, right_dom)
    assert np.isclose(result.right_channel_bleed_db, 20.0 * np.log10(0.002))
    assert result.left_channel_bleed_db == float("-inf")
    assert result.left_dominant_blocks == 2
    assert result.right_dominant_blocks == 2
    assert result.detected


def test_loud_uncorrelated_bleed_flagged_by_level():
    left = noise(4.0, FS, -32.0, seed=1)
    right = noise(4.0, FS, -55.0, seed=2)
    report = detect_mic_bleed(stereo(left, right, FS))
    assert report.level.detected
    assert np.isclose(report.level.right_channel_bleed_db, -55.0, atol=0.5)
    assert report.level.left_dominant_blocks == 16
    assert not report.separation.detected
    assert report.separation.confirmed_bleed_blocks == 0
    assert report.separation.median_separation_db > 20.0
    assert report.detected


def test_quiet_correlated_bleed_flagged_by_separation():
    left = noise(4.0, FS, -50.0, seed=3)
    right = 0.25 * left
    report = detect_mic_bleed(stereo(left, right, FS))
    assert not report.level.detected
    assert report.separation.detected
    assert report.separation.concerning_blocks == 16
    assert report.separation.confirmed_bleed_blocks == 16
    assert np.isclose(report.separation.percentage_confirmed_bleed, 100.0)
    assert np.isclose(report.separation.median_separation_db, 12.04, atol=0.01)
    assert report.detected


def test_clean_two_speaker_recording():
    left = np.concatenate([noise(1.0, FS, -20.0, seed=4), silence(1.0, FS)] * 2)
    right = np.concatenate([silence(1.0, FS), noise(1.0, FS, -20.0, seed=5)] * 2)
    report = detect_mic_bleed(stereo(left, right, FS))
    assert report.level.left_channel_bleed_db == float("-inf")
    assert report.level.right_channel_bleed_db == float("-inf")
    assert report.separation.concerning_blocks == 0
    assert not report.detected


def test_no_dominant_blocks():
    x = noise(2.0, FS, -20.0, seed=6)
    report = detect_mic_bleed(stereo(x, x, FS))
    assert report.separation.median_separation_db is None
    assert report.separation.p10_separation_db is None
    assert report.separation.total_blocks == 8
    assert not report.detected


def test_bleed_severity_score_scale():
    assert bleed_severity_score(0.0) == 0.0
    assert np.isclose(bleed_severity_score(0.5), 10.0)
    assert bleed_severity_score(50.0) == 100.0
    assert np.isclose(bleed_severity_score(1.0, full_scale_percent=2.0), 50.0)
    with pytest.raises(ValueError):
        bleed_severity_score(1.0, full_scale_percent=0.0)


def test_confirmed_bleed_reports_severity():
    left = noise(4.0, FS, -50.0, seed=3)
    report = detect_mic_bleed(stereo(left, 0.25 * left, FS))
    assert report.separation.severity_score == 100.0
    clean = detect_mic_bleed(stereo(left, noise(4.0, FS, -90.0, seed=8), FS))
    assert clean.separation.severity_score == 0.0
