from __future__ import annotations

import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from speechqc.types import SampleBuffer  # noqa: E402


def db_to_amp(db: float) -> float:
    return float(10.0 ** (db / 20.0))


def noise(seconds: float, fs: int, rms_db: float, *, seed: int = 0) -> np.ndarray:
    """Gaussian noise with the requested RMS level in dBFS."""
    rng = np.random.default_rng(seed)
    n = int(round(seconds * fs))
    return rng.standard_normal(n) * db_to_amp(rms_db)


def constant(seconds: float, fs: int, value: float) -> np.ndarray:
    return np.full(int(round(seconds * fs)), float(value), dtype=np.float64)


def silence(seconds: float, fs: int) -> np.ndarray:
    return np.zeros(int(round(seconds * fs)), dtype=np.float64)


def mono(x: np.ndarray, fs: int) -> SampleBuffer:
    return SampleBuffer.from_channels([x], fs)


def stereo(left: np.ndarray, right: np.ndarray, fs: int) -> SampleBuffer:
    return SampleBuffer.from_channels([left, right], fs)
