"""Fail-fast checks run before any analyzer touches a buffer."""
from __future__ import annotations

import numpy as np

from speechqc.errors import InvalidBufferError
from speechqc.types import SampleBuffer


def validate_buffer(buffer: SampleBuffer) -> SampleBuffer:
    """Raise InvalidBufferError unless the buffer can be analyzed."""
    x = buffer.samples
    if not isinstance(x, np.ndarray) or x.ndim != 2:
        raise InvalidBufferError("Expected samples shaped (frames, channels).")
    if x.shape[1] == 0:
        raise InvalidBufferError("Buffer has no channels.")
    if x.shape[0] == 0:
        raise InvalidBufferError("Buffer has no frames.")
    if buffer.sample_rate <= 0:
        raise InvalidBufferError(
            f"Sample rate must be positive, got {buffer.sample_rate}."
        )
    if not np.all(np.isfinite(x)):
        raise InvalidBufferError("Buffer contains non-finite samples.")
    if float(np.max(np.abs(x))) > 1.0:
        raise InvalidBufferError("Samples must lie within [-1.0, 1.0].")
    return buffer
