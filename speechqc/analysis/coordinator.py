"""Top-level analysis orchestration."""
from __future__ import annotations

import logging
import threading

from speechqc.analysis.cancellation import CancellationToken
from speechqc.analysis.progress import ProgressCallback, StageProgress, scale_progress
from speechqc.analysis.validation import validate_buffer
from speechqc.errors import AnalysisCancelledError
from speechqc.metrics.bleed import detect_mic_bleed
from speechqc.metrics.clipping import detect_clipping
from speechqc.metrics.conversational import analyze_conversational
from speechqc.metrics.levels import check_normalization, peak_level_db
from speechqc.metrics.noise import noise_floor_histogram_db, noise_floor_quantile_db
from speechqc.metrics.reverb import estimate_reverb
from speechqc.metrics.silence import analyze_silence
from speechqc.metrics.stereo import analyze_stereo_separation
from speechqc.types import AnalysisReport, SampleBuffer, StereoType

logger = logging.getLogger(__name__)

PROGRESS_STAGES = {
    "PEAK_START": 0.0,
    "PEAK_END": 0.5,
    "NOISE_FLOOR_START": 0.5,
    "NOISE_FLOOR_END": 0.9,
    "NORMALIZATION": 0.9,
    "EXTENDED_START": 0.9,
    "EXTENDED_END": 1.0,
}

# (stage name, progress message) for the extended analyzers, in run order.
EXTENDED_STAGES = (
    ("noise-floor-histogram", "Estimating noise floor distribution..."),
    ("reverb", "Estimating reverb..."),
    ("silence", "Analyzing silence..."),
    ("clipping", "Detecting clipping..."),
    ("stereo-separation", "Analyzing stereo separation..."),
    ("mic-bleed", "Detecting mic bleed..."),
    ("conversational", "Analyzing speech overlap..."),
)

COMPLETE_MESSAGE = "Analysis complete!"


class AnalysisCoordinator:
    """
    Runs every analyzer over one buffer in a fixed order.

    ``analyze`` blocks the calling thread; ``cancel`` may be called from any
    other thread (or from inside the progress callback) and makes the
    running analyzer raise AnalysisCancelledError at its next check. No
    partial report is returned after a cancellation.
    """

    def __init__(self, *, conversational_config: dict | None = None) -> None:
        self.conversational_config = conversational_config
        self._token = CancellationToken()
        self._lock = threading.Lock()
        self._in_progress = False

    @property
    def analysis_in_progress(self) -> bool:
        return self._in_progress

    def cancel(self) -> None:
        """Request cancellation of the in-flight analysis."""
        with self._lock:
            token = self._token
        token.cancel()

    def analyze(
        self,
        buffer: SampleBuffer,
        progress_callback: ProgressCallback | None = None,
        include_extended: bool = False,
        *,
        token: CancellationToken | None = None,
    ) -> AnalysisReport:
        """
        Analyze a buffer and return the full report.

        Args:
            buffer: Decoded samples and sample rate
            progress_callback: Optional ``(message, progress)`` observer
            include_extended: Run reverb, silence, clipping and stereo analyzers
            token: Caller-owned cancellation token; a fresh generation of the
                coordinator's own token is used when omitted

        Returns:
            AnalysisReport

        Raises:
            InvalidBufferError: Buffer failed validation
            AnalysisCancelledError: Cancelled before completion
        """
        with self._lock:
            if token is None:
                token = self._token
                token.reset()
            else:
                self._token = token
            self._in_progress = True
        try:
            # A cancel() that lands during validation is honored by the first stage.
            validate_buffer(buffer)
            return self._run(buffer, progress_callback, include_extended, token)
        except AnalysisCancelledError as exc:
            logger.info("Analysis cancelled during stage %s", exc.stage)
            raise
        finally:
            self._in_progress = False

    def _stage(
        self,
        stage: str,
        message: str,
        start: float,
        end: float,
        token: CancellationToken,
        callback: ProgressCallback | None,
    ) -> StageProgress:
        logger.debug("Starting stage %s", stage)
        progress = StageProgress(
            stage,
            message,
            token=token,
            callback=callback,
            start=start,
            end=end,
        )
        progress.begin()
        return progress

    def _run(
        self,
        buffer: SampleBuffer,
        callback: ProgressCallback | None,
        include_extended: bool,
        token: CancellationToken,
    ) -> AnalysisReport:
        stages = PROGRESS_STAGES

        peak_db = peak_level_db(
            buffer,
            self._stage(
                "peak-levels",
                "Analyzing peak levels...",
                stages["PEAK_START"],
                stages["PEAK_END"],
                token,
                callback,
            ),
        )
        noise_floor_db = noise_floor_quantile_db(
            buffer,
            self._stage(
                "noise-floor",
                "Analyzing noise floor...",
                stages["NOISE_FLOOR_START"],
                stages["NOISE_FLOOR_END"],
                token,
                callback,
            ),
        )
        self._stage(
            "normalization",
            "Checking normalization...",
            stages["NORMALIZATION"],
            stages["NORMALIZATION"],
            token,
            callback,
        )
        normalization = check_normalization(peak_db)

        extended: dict = {}
        if include_extended:
            extended = self._run_extended(buffer, peak_db, callback, token)

        if callback is not None:
            callback(COMPLETE_MESSAGE, 1.0)
        report = AnalysisReport(
            sample_rate=int(buffer.sample_rate),
            channel_count=buffer.channel_count,
            duration_seconds=buffer.duration,
            peak_db=peak_db,
            noise_floor_db=noise_floor_db,
            normalization=normalization,
            **extended,
        )
        logger.info(
            "Analyzed %d ch @ %d Hz (%.1fs): peak %.1f dB, noise floor %.1f dB",
            report.channel_count,
            report.sample_rate,
            report.duration_seconds,
            peak_db,
            noise_floor_db,
        )
        return report

    def _run_extended(
        self,
        buffer: SampleBuffer,
        peak_db: float,
        callback: ProgressCallback | None,
        token: CancellationToken,
    ) -> dict:
        start = PROGRESS_STAGES["EXTENDED_START"]
        end = PROGRESS_STAGES["EXTENDED_END"]
        count = len(EXTENDED_STAGES)

        def stage(i: int) -> StageProgress:
            name, message = EXTENDED_STAGES[i]
            return self._stage(
                name,
                message,
                scale_progress(i / count, start, end),
                scale_progress((i + 1) / count, start, end),
                token,
                callback,
            )

        histogram_db = noise_floor_histogram_db(buffer, stage(0))
        reverb = estimate_reverb(buffer, histogram_db, stage(1))
        silence = analyze_silence(buffer, peak_db, histogram_db, stage(2))
        clipping = detect_clipping(buffer, stage(3))

        stereo = mic_bleed = conversational = None
        if buffer.channel_count == 2:
            stereo = analyze_stereo_separation(buffer, stage(4))
            mic_bleed = detect_mic_bleed(buffer, stage(5))
            if stereo is not None and stereo.stereo_type == StereoType.CONVERSATIONAL:
                conversational = analyze_conversational(
                    buffer,
                    histogram_db,
                    stage(6),
                    config=self.conversational_config,
                )

        return {
            "noise_floor_histogram_db": histogram_db,
            "reverb": reverb,
            "silence": silence,
            "clipping": clipping,
            "stereo_separation": stereo,
            "mic_bleed": mic_bleed,
            "conversational": conversational,
        }


def analyze(
    buffer: SampleBuffer,
    progress_callback: ProgressCallback | None = None,
    include_extended: bool = False,
    *,
    token: CancellationToken | None = None,
    conversational_config: dict | None = None,
) -> AnalysisReport:
    """Analyze a buffer with a one-off coordinator; cancel through ``token``."""
    coordinator = AnalysisCoordinator(conversational_config=conversational_config)
    return coordinator.analyze(
        buffer,
        progress_callback,
        include_extended,
        token=token,
    )
