# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Measurement pipeline.

Orchestrates analysis passes over live frames and owns the session state
that persists between them. The pipeline is single-threaded: the host
calls ``on_tick()`` at whatever cadence it renders at, and the only
suspension is the delay between passes of an averaged measurement.

State machine::

    IDLE --start()--> RUNNING <--pause()/resume()--> PAUSED
      ^                  |                              |
      +------stop()------+------------stop()------------+

One analysis pass:

1. Grab the current frame
2. Map the sample and reference regions to buffer coordinates
3. Glare % over the sample region, WB deviation over the reference region
4. Sample the circle; in bean mode drop the brightest samples
5. Apply gains and CCM, convert to Lab, average
6. Update the L* moving average, predict the score, classify
7. Readiness score
"""

from __future__ import annotations

import logging
import platform
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

import numpy as np
from numpy.typing import NDArray

from agtroncam.errors import NoFrameError, QualityGateRejected
from agtroncam.schema import (
    IDENTITY_CCM,
    CalibrationPoint,
    CategoryScheme,
    GainVector,
    LabColor,
    MeasurementLogEntry,
    ModelKind,
    Rect,
    SampleMode,
    ScoreModel,
    SessionState,
    SettingsBlob,
    get_gate_profile,
)
from agtroncam.measure.colorspace import mean_lab, srgb_to_lab
from agtroncam.measure.quality import (
    StabilityTracker,
    WhiteBalanceDeviation,
    check_gate,
    glare_percent,
    quality_hints,
    readiness_score,
    white_balance_deviation,
)
from agtroncam.measure.sampling import (
    RegionShape,
    crop,
    map_screen_region_to_buffer,
    reject_highlights,
    sample_pixels,
)
from agtroncam.measure.scoring import Category, classify, fit_model, predict
from agtroncam.measure.white_balance import apply_correction, compute_gains
from agtroncam.runtime.interfaces import FrameSource, RegionProvider, SettingsStore
from agtroncam.runtime.serializers import export_csv, export_image, export_json, import_json
from agtroncam.runtime.store import MemorySettingsStore

logger = logging.getLogger(__name__)


def _default_device() -> str:
    return platform.node() or "unknown"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PipelineConfig:
    """Tunables for sampling, quality signals and averaged measurement."""

    # Grid strides (pixels)
    sample_stride: int = 3       # sample circle for Lab
    glare_stride: int = 1        # sample region for glare %
    wb_check_stride: int = 6     # reference box for WB deviation
    white_stride: int = 4        # reference box for white calibration
    gray_stride: int = 2         # reference box for gray-card calibration

    glare_threshold: int = 250
    ema_alpha: float = 0.2

    # Heuristic share of brightest samples dropped in bean mode
    highlight_reject_fraction: float = 0.10

    measure_frames: int = 18
    measure_delay_ms: float = 25.0

    device: str = field(default_factory=_default_device)


class PipelineStatus(Enum):
    """Capture state of the pipeline."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True, slots=True)
class PassResult:
    """
    Outcome of one analysis pass.

    Attributes:
        lab: Mean Lab color of the corrected sample circle
        score: Predicted roast score
        category: Roast category for the score
        glare: Glare percentage of the sample region
        wb_deviation: Reference-patch deviation from neutral
        stability: |EMA(L) - L| after this pass
        readiness: Advisory 0-100 readiness
        sample_count: Samples that went into the Lab mean
        hints: Advisory messages for signals above the gate thresholds
    """
    lab: LabColor
    score: float
    category: Category
    glare: float
    wb_deviation: WhiteBalanceDeviation
    stability: float
    readiness: float
    sample_count: int
    hints: tuple[str, ...] = ()

    @property
    def L(self) -> float:
        return self.lab.L

    @property
    def a(self) -> float:
        return self.lab.a

    @property
    def b(self) -> float:
        return self.lab.b

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "L": self.lab.L,
            "a": self.lab.a,
            "b": self.lab.b,
            "score": self.score,
            "category": self.category.name,
            "glare": self.glare,
            "wbDeviation": list(self.wb_deviation.per_channel),
            "wbMaxDeviation": self.wb_deviation.max_deviation,
            "stability": self.stability,
            "readiness": self.readiness,
            "samples": self.sample_count,
            "hints": list(self.hints),
        }


@dataclass(frozen=True, slots=True)
class WhiteCalibration:
    """Gains from a white/gray calibration and the raw reference means."""
    gains: GainVector
    means: tuple[float, float, float]


@dataclass(frozen=True)
class _Capture:
    pixels: NDArray[np.uint8]
    sample_rect: Rect
    reference_rect: Rect


class MeasurementPipeline:
    """
    Live roast-level measurement over a frame source.

    Args:
        source: Capture session supplying frames
        regions: Provider of the sample and reference rectangles
        store: Settings persistence (in-memory if omitted)
        config: Pipeline tunables
        state: Existing session state to continue from
        sleep: Called with seconds between averaged-measurement passes
        clock: Timestamp source for log entries

    Example:
        >>> pipeline = MeasurementPipeline(OpenCVFrameSource(), CenteredLayout(1280, 720))
        >>> pipeline.start()
        >>> pipeline.calibrate_white()
        >>> entry = pipeline.measure()
        >>> entry.score, entry.category
        (58.3, 'Medium-Light')
    """

    def __init__(
        self,
        source: FrameSource,
        regions: RegionProvider,
        *,
        store: Optional[SettingsStore] = None,
        config: Optional[PipelineConfig] = None,
        state: Optional[SessionState] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.source = source
        self.regions = regions
        self.store = store if store is not None else MemorySettingsStore()
        self.config = config or PipelineConfig()
        self.state = state if state is not None else SessionState()
        self.stability = StabilityTracker(self.config.ema_alpha)
        self.status = PipelineStatus.IDLE
        self.last_result: Optional[PassResult] = None
        self._sleep = sleep
        self._clock = clock

    # -------------------------------------------------------------------------
    # Capture lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """
        Open the frame source and begin analysing on ticks.

        Raises:
            CaptureUnavailableError: The source could not be opened; the
                pipeline stays idle.
        """
        if self.status is not PipelineStatus.IDLE:
            return
        self.source.open()
        self.status = PipelineStatus.RUNNING
        logger.info("Capture started")

    def pause(self) -> None:
        if self.status is PipelineStatus.RUNNING:
            self.status = PipelineStatus.PAUSED
            logger.info("Capture paused")

    def resume(self) -> None:
        if self.status is PipelineStatus.PAUSED:
            self.status = PipelineStatus.RUNNING
            logger.info("Capture resumed")

    def toggle_pause(self) -> None:
        if self.status is PipelineStatus.RUNNING:
            self.pause()
        else:
            self.resume()

    def stop(self) -> None:
        """Release the frame source and return to idle."""
        self.source.close()
        if self.status is not PipelineStatus.IDLE:
            logger.info("Capture stopped")
        self.status = PipelineStatus.IDLE

    def on_tick(self) -> Optional[PassResult]:
        """Scheduler hook: one analysis pass while running and not paused."""
        if self.status is not PipelineStatus.RUNNING:
            return None
        return self.analyze_once()

    # -------------------------------------------------------------------------
    # Analysis
    # -------------------------------------------------------------------------

    def _capture(self) -> Optional[_Capture]:
        frame = self.source.get_current_frame()
        if frame.width <= 0 or frame.height <= 0 or frame.pixels.size == 0:
            return None

        display = self.regions.display_rect()
        if display.width <= 0 or display.height <= 0:
            return None

        return _Capture(
            pixels=frame.pixels,
            sample_rect=map_screen_region_to_buffer(
                self.regions.sample_region_rect(), display, frame.width, frame.height,
            ),
            reference_rect=map_screen_region_to_buffer(
                self.regions.reference_region_rect(), display, frame.width, frame.height,
            ),
        )

    def analyze_once(self) -> Optional[PassResult]:
        """
        Run one analysis pass on the current frame.

        Returns:
            PassResult, or None when the frame has no usable data (zero
            size or no samples). Nothing is mutated in that case.
        """
        cap = self._capture()
        if cap is None:
            return None
        cfg = self.config
        state = self.state

        glare = glare_percent(
            sample_pixels(cap.pixels, cap.sample_rect, cfg.glare_stride),
            cfg.glare_threshold,
        )
        wb = white_balance_deviation(
            sample_pixels(cap.pixels, cap.reference_rect, cfg.wb_check_stride)
        )

        samples = sample_pixels(cap.pixels, cap.sample_rect, cfg.sample_stride, RegionShape.CIRCLE)
        if state.mode is SampleMode.BEAN:
            samples = reject_highlights(samples, cfg.highlight_reject_fraction)
        if len(samples) == 0:
            return None

        rgb = apply_correction(samples, state.gains, state.ccm)
        lab = mean_lab(srgb_to_lab(rgb))

        self.stability.update(lab.L)
        stability = self.stability.delta(lab.L)

        score = predict(lab, state.model, state.scale, state.offset)
        category = classify(score, state.scheme)
        readiness = readiness_score(glare, wb.max_deviation, stability)

        result = PassResult(
            lab=lab,
            score=score,
            category=category,
            glare=glare,
            wb_deviation=wb,
            stability=stability,
            readiness=readiness,
            sample_count=len(samples),
            hints=tuple(quality_hints(state.gate_profile, glare, wb.max_deviation, stability)),
        )
        self.last_result = result
        logger.debug(
            "Pass: L=%.2f a=%.2f b=%.2f score=%.1f glare=%.1f wb=%.1f stab=%.2f ready=%.0f",
            lab.L, lab.a, lab.b, score, glare, wb.max_deviation, stability, readiness,
        )
        return result

    def measure(
        self,
        frame_count: Optional[int] = None,
        delay_ms: Optional[float] = None,
    ) -> MeasurementLogEntry:
        """
        Quality-gated, frame-averaged measurement.

        A pre-check pass is checked against the active gate profile. If it
        passes, ``frame_count`` further passes run ``delay_ms`` apart and
        their means are appended to the log.

        Raises:
            NoFrameError: No pass produced data
            QualityGateRejected: The pre-check failed a threshold; nothing
                is logged
        """
        frame_count = self.config.measure_frames if frame_count is None else frame_count
        delay_ms = self.config.measure_delay_ms if delay_ms is None else delay_ms
        if frame_count < 1:
            raise ValueError(f"frame_count must be >= 1, got {frame_count}")

        precheck = self.analyze_once()
        if precheck is None:
            raise NoFrameError("No frame data available for measurement")

        profile = self.state.gate_profile
        failure = check_gate(
            profile, precheck.glare, precheck.wb_deviation.max_deviation, precheck.stability,
        )
        if failure is not None:
            signal, value, limit = failure
            logger.warning(
                "Measurement rejected by %s gate: %s=%.2f > %.2f",
                profile.name, signal.value, value, limit,
            )
            raise QualityGateRejected(signal, value, limit)

        results: list[PassResult] = []
        for i in range(frame_count):
            result = self.analyze_once()
            if result is not None:
                results.append(result)
            if i < frame_count - 1:
                self._sleep(delay_ms / 1000.0)

        if not results:
            raise NoFrameError("No frame data available for measurement")

        def avg(values) -> float:
            return float(np.mean(values))

        score = avg([r.score for r in results])
        state = self.state
        entry = MeasurementLogEntry(
            time=self._clock(),
            L=round(avg([r.L for r in results]), 2),
            a=round(avg([r.a for r in results]), 2),
            b=round(avg([r.b for r in results]), 2),
            score=round(score, 1),
            category=classify(score, state.scheme).name,
            model=state.model_label,
            scale=state.scale,
            offset=state.offset,
            glare=round(avg([r.glare for r in results]), 1),
            wb_deviation=round(avg([r.wb_deviation.max_deviation for r in results]), 1),
            readiness=round(avg([r.readiness for r in results]), 1),
            gate=profile.name,
            mode=state.mode.value,
            device=self.config.device,
        )
        state.log.append(entry)
        logger.info(
            "Measured %s (score %.1f, L %.2f) over %d frames",
            entry.category, entry.score, entry.L, len(results),
        )
        return entry

    # -------------------------------------------------------------------------
    # White balance
    # -------------------------------------------------------------------------

    def _calibrate(self, stride: int) -> WhiteCalibration:
        cap = self._capture()
        if cap is None:
            raise NoFrameError("No frame data available for calibration")
        samples = sample_pixels(cap.pixels, cap.reference_rect, stride)
        if len(samples) == 0:
            raise NoFrameError("Reference region is outside the frame")
        gains, means = compute_gains(samples)
        self.state.gains = gains
        return WhiteCalibration(gains=gains, means=means)

    def calibrate_white(self) -> WhiteCalibration:
        """Derive gains from white paper in the reference box."""
        calibration = self._calibrate(self.config.white_stride)
        logger.info(
            "White calibration: means (%.1f, %.1f, %.1f) -> gains (%.4f, %.4f, %.4f)",
            *calibration.means, *calibration.gains.as_tuple(),
        )
        return calibration

    def calibrate_gray(self) -> WhiteCalibration:
        """
        Derive gains from a gray card in the reference box.

        Samples more densely than white calibration and resets the CCM to
        identity. No off-diagonal correction is computed.
        """
        calibration = self._calibrate(self.config.gray_stride)
        self.state.ccm = IDENTITY_CCM
        logger.info(
            "Gray-card calibration: means (%.1f, %.1f, %.1f) -> gains (%.4f, %.4f, %.4f)",
            *calibration.means, *calibration.gains.as_tuple(),
        )
        return calibration

    # -------------------------------------------------------------------------
    # Score model calibration
    # -------------------------------------------------------------------------

    def add_calibration_point(
        self,
        reference_score: float,
        lab: Optional[LabColor] = None,
    ) -> CalibrationPoint:
        """
        Pair a known reference score with a measured color.

        Args:
            reference_score: Ground-truth score of the sample in view
            lab: Color to pair with; measured with one pass if omitted

        Raises:
            NoFrameError: No color given and the pass produced no data
        """
        if lab is None:
            result = self.analyze_once()
            if result is None:
                raise NoFrameError("No frame data available for calibration point")
            lab = result.lab
        point = CalibrationPoint(reference_score=float(reference_score), L=lab.L, a=lab.a, b=lab.b)
        self.state.calibration_points.append(point)
        logger.info(
            "Calibration point %d: score %.1f at L=%.2f",
            len(self.state.calibration_points), point.reference_score, point.L,
        )
        return point

    def fit_linear_model(self, ridge_lambda: Optional[float] = None) -> ScoreModel:
        """Fit and activate ``w0 + w1*L``. Needs at least 2 points."""
        return self._fit(ModelKind.LINEAR, ridge_lambda)

    def fit_polynomial_model(self, ridge_lambda: Optional[float] = None) -> ScoreModel:
        """Fit and activate ``w0 + w1*L + w2*a + w3*b + w4*L²``. Needs at least 3 points."""
        return self._fit(ModelKind.POLYNOMIAL, ridge_lambda)

    def _fit(self, kind: ModelKind, ridge_lambda: Optional[float]) -> ScoreModel:
        model = fit_model(self.state.calibration_points, kind, ridge_lambda)
        self.state.model = model
        return model

    def clear_calibration_points(self) -> None:
        self.state.calibration_points = []

    def clear_model(self) -> None:
        """Fall back to the ``scale * L + offset`` formula."""
        self.state.model = None

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def set_scale(self, scale: float) -> None:
        self.state.scale = float(scale)

    def set_offset(self, offset: float) -> None:
        self.state.offset = float(offset)

    def set_scheme(self, scheme: Union[CategoryScheme, str]) -> None:
        self.state.scheme = CategoryScheme(scheme)

    def set_gate(self, name: str) -> None:
        self.state.gate = get_gate_profile(name).name

    def set_mode(self, mode: Union[SampleMode, str]) -> None:
        self.state.mode = SampleMode(mode)

    def save(self) -> None:
        """Persist the calibration state to the settings store."""
        self.store.save(self.state.to_settings().to_dict())
        logger.info("Settings saved")

    def restore(self) -> bool:
        """
        Load the calibration state from the settings store.

        Returns:
            False if the store is empty

        Raises:
            SettingsFormatError: The stored blob is malformed; state unchanged
        """
        data = self.store.load()
        if data is None:
            return False
        self.state.apply_settings(SettingsBlob.from_dict(data))
        logger.info("Settings restored")
        return True

    def reset(self) -> None:
        """Stop capture, restore all defaults, clear the log and the store."""
        self.stop()
        self.state.reset()
        self.stability.reset()
        self.last_result = None
        self.store.clear()
        logger.info("Session reset")

    # -------------------------------------------------------------------------
    # Export / import
    # -------------------------------------------------------------------------

    def export_model(self) -> str:
        """Calibration state as a versioned JSON document."""
        return export_json(self.state.to_settings())

    def import_model(self, data: Union[str, bytes]) -> SettingsBlob:
        """
        Replace the calibration state with an exported document.

        Raises:
            SettingsFormatError: Malformed input; nothing is applied
        """
        try:
            blob = import_json(data)
        except ValueError as e:
            logger.warning("Rejected settings import: %s", e)
            raise
        self.state.apply_settings(blob)
        logger.info("Settings imported")
        return blob

    def export_csv(self) -> str:
        """The measurement log as CSV."""
        return export_csv(self.state.log)

    def export_snapshot(self) -> bytes:
        """PNG of the sample region of the current frame."""
        cap = self._capture()
        if cap is None:
            raise NoFrameError("No frame data available for snapshot")
        return export_image(crop(cap.pixels, cap.sample_rect))
