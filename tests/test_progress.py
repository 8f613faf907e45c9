from __future__ import annotations

import numpy as np
import pytest

from speechqc.analysis.blocks import block_rms, block_size_for, rms_to_db, window_rms
from speechqc.analysis.cancellation import CancellationToken
from speechqc.analysis.progress import StageProgress, scale_progress, silent_progress
from speechqc.errors import AnalysisCancelledError


def test_scale_progress_maps_and_clamps():
    assert np.isclose(scale_progress(0.5, 0.5, 0.9), 0.7)
    assert scale_progress(-1.0, 0.2, 0.4) == 0.2
    assert np.isclose(scale_progress(2.0, 0.2, 0.4), 0.4)


def test_stage_progress_is_monotonic():
    values = []
    progress = StageProgress(
        "noise-floor",
        "Analyzing noise floor...",
        callback=lambda msg, value: values.append((msg, value)),
        start=0.5,
        end=0.9,
    )
    progress.begin()
    progress.update(0.5)
    progress.update(0.25)
    progress.update(1.0)
    assert [v for _, v in values] == pytest.approx([0.5, 0.7, 0.7, 0.9])
    assert {m for m, _ in values} == {"Analyzing noise floor..."}


def test_cancelled_error_defaults():
    err = AnalysisCancelledError()
    assert err.message == "Analysis was cancelled by user"
    assert err.stage is None
    assert str(err) == "Analysis was cancelled by user"


def test_token_raises_with_stage():
    token = CancellationToken()
    token.raise_if_cancelled("reverb")
    token.cancel()
    assert token.cancelled
    with pytest.raises(AnalysisCancelledError) as excinfo:
        token.raise_if_cancelled("reverb")
    assert excinfo.value.stage == "reverb"


def test_token_reset_starts_new_generation():
    token = CancellationToken()
    token.cancel()
    generation = token.generation
    assert token.reset() == generation + 1
    assert not token.cancelled


def test_stage_progress_update_checks_token():
    token = CancellationToken()
    progress = StageProgress("clipping", "Detecting clipping...", token=token)
    progress.update(0.1)
    token.cancel()
    with pytest.raises(AnalysisCancelledError) as excinfo:
        progress.update(0.2)
    assert excinfo.value.stage == "clipping"


def test_block_rms_includes_partial_block():
    x = np.concatenate([np.full(4, 0.5), np.full(2, 0.25)]).reshape(-1, 1)
    rms = block_rms(x, 4, silent_progress("test"))
    assert rms.shape == (2, 1)
    assert np.allclose(rms[:, 0], [0.5, 0.25])


def test_block_rms_checks_cancellation_per_batch():
    token = CancellationToken()
    token.cancel()
    progress = StageProgress("stereo-separation", "", token=token)
    with pytest.raises(AnalysisCancelledError):
        block_rms(np.zeros((1000, 2)), 10, progress)


def test_window_rms_drops_partial_window():
    out = window_rms(np.full(10, 0.5), 4)
    assert out.shape == (2,)
    assert np.allclose(out, 0.5)
    assert window_rms(np.zeros(3), 4).size == 0


def test_block_size_and_db_floor():
    assert block_size_for(44_100, 0.25) == 11_025
    assert block_size_for(10, 0.01) == 1
    assert np.isclose(rms_to_db(0.0), -200.0)
    assert np.isclose(rms_to_db(0.1), -20.0)
