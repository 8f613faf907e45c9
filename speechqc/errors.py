"""Exceptions raised by the analysis engine."""
from __future__ import annotations


class AnalysisCancelledError(Exception):
    """Analysis was cancelled mid-flight; ``stage`` names where it stopped."""

    def __init__(
        self,
        message: str = "Analysis was cancelled by user",
        stage: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage


class InvalidBufferError(ValueError):
    """Sample buffer cannot be analyzed (empty, ragged, or bad sample rate)."""
