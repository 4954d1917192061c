# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""Tests for the live measurement pipeline."""

import io
from datetime import datetime, timezone

import numpy as np
import pytest

from agtroncam.errors import (
    CaptureUnavailableError,
    InsufficientCalibrationPointsError,
    NoFrameError,
    QualityGateRejected,
    SettingsFormatError,
)
from agtroncam.measure import MeasurementPipeline, PipelineConfig, PipelineStatus
from agtroncam.measure.quality import GateSignal
from agtroncam.runtime import ArrayFrameSource, Frame, MemorySettingsStore
from agtroncam.schema import IDENTITY_CCM, GainVector, LabColor, ModelKind, Rect

FIXED_TIME = datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc)


class FixedRegions:
    """Sample box (30, 30, 40, 40) and reference box in the top-right corner."""

    def __init__(self, display=Rect(0, 0, 100, 100), factor=1.0):
        self._display = display
        self._factor = factor

    def _scaled(self, x, y, w, h):
        f = self._factor
        return Rect(x * f, y * f, w * f, h * f)

    def sample_region_rect(self):
        return self._scaled(30, 30, 40, 40)

    def reference_region_rect(self):
        return self._scaled(80, 0, 20, 14)

    def display_rect(self):
        return self._display


class EmptySource:
    """Open capture that has not delivered a frame yet."""

    def open(self):
        pass

    def close(self):
        pass

    def get_current_frame(self):
        return Frame(pixels=np.empty((0, 0, 3), dtype=np.uint8), width=0, height=0)


class DeniedSource(EmptySource):

    def open(self):
        raise CaptureUnavailableError("Camera permission denied")


def _scene(sample_rgb=(200, 200, 200), reference_rgb=(250, 250, 248)):
    img = np.full((100, 100, 3), 20, dtype=np.uint8)
    img[30:70, 30:70] = sample_rgb
    img[0:14, 80:100] = reference_rgb
    return img


def _pipeline(img=None, source=None, regions=None, store=None, sleeps=None):
    pipeline = MeasurementPipeline(
        source if source is not None else ArrayFrameSource(img if img is not None else _scene()),
        regions or FixedRegions(),
        store=store,
        config=PipelineConfig(device="test-rig"),
        sleep=(sleeps.append if sleeps is not None else lambda s: None),
        clock=lambda: FIXED_TIME,
    )
    return pipeline


class TestLifecycle:

    def test_starts_idle(self):
        assert _pipeline().status is PipelineStatus.IDLE

    def test_start_pause_resume_stop(self):
        p = _pipeline()
        p.start()
        assert p.status is PipelineStatus.RUNNING
        p.pause()
        assert p.status is PipelineStatus.PAUSED
        p.resume()
        assert p.status is PipelineStatus.RUNNING
        p.stop()
        assert p.status is PipelineStatus.IDLE

    def test_toggle_pause(self):
        p = _pipeline()
        p.start()
        p.toggle_pause()
        assert p.status is PipelineStatus.PAUSED
        p.toggle_pause()
        assert p.status is PipelineStatus.RUNNING

    def test_toggle_when_idle_is_noop(self):
        p = _pipeline()
        p.toggle_pause()
        assert p.status is PipelineStatus.IDLE

    def test_tick_only_while_running(self):
        p = _pipeline()
        assert p.on_tick() is None
        p.start()
        assert p.on_tick() is not None
        p.pause()
        assert p.on_tick() is None

    def test_denied_capture_stays_idle(self):
        p = _pipeline(source=DeniedSource())
        with pytest.raises(CaptureUnavailableError):
            p.start()
        assert p.status is PipelineStatus.IDLE

    def test_frames_require_open_source(self):
        p = _pipeline()
        with pytest.raises(CaptureUnavailableError):
            p.analyze_once()


class TestAnalysis:

    def test_uncalibrated_gray(self):
        p = _pipeline()
        p.start()
        r = p.analyze_once()
        assert r.L == pytest.approx(80.604, abs=1e-2)
        assert r.a == pytest.approx(0.0, abs=1e-3)
        assert r.score == pytest.approx(1.2 * r.L + 10.0)
        assert r.category.name == "Very Light"
        assert r.glare == 0.0
        assert r.wb_deviation.max_deviation == pytest.approx(4.0 / 3.0)
        assert r.readiness == pytest.approx(100.0 - 1.2 * 4.0 / 3.0)
        assert r.hints == ()

    def test_white_calibration_scenario(self):
        p = _pipeline()
        p.start()
        cal = p.calibrate_white()
        assert cal.means == pytest.approx((250.0, 250.0, 248.0))
        assert cal.gains.r == pytest.approx(0.997333, abs=1e-6)
        assert cal.gains.b == pytest.approx(1.005376, abs=1e-6)
        assert p.state.gains == cal.gains

        r = p.analyze_once()
        assert round(r.L, 1) == 80.5
        assert r.a == pytest.approx(0.30, abs=0.05)
        assert r.b == pytest.approx(-0.80, abs=0.05)

    def test_display_scaling(self):
        # Same scene shown at half size
        p = _pipeline(regions=FixedRegions(display=Rect(0, 0, 50, 50), factor=0.5))
        p.start()
        r = p.analyze_once()
        assert r.L == pytest.approx(80.604, abs=1e-2)
        assert r.sample_count == _sample_count()

    def test_no_data_returns_none(self):
        p = _pipeline(source=EmptySource())
        p.start()
        assert p.analyze_once() is None
        assert p.last_result is None

    def test_zero_display_returns_none(self):
        p = _pipeline(regions=FixedRegions(display=Rect(0, 0, 0, 0)))
        p.start()
        assert p.analyze_once() is None

    def test_bean_mode_drops_highlights(self):
        img = _scene(sample_rgb=(100, 100, 100))
        img[48:51, 48:51] = 240
        p = _pipeline(img)
        p.start()
        ground = p.analyze_once()
        p.set_mode("bean")
        bean = p.analyze_once()
        assert bean.L == pytest.approx(42.375, abs=1e-2)
        assert ground.L > bean.L
        assert bean.sample_count < ground.sample_count

    def test_ccm_applied(self):
        img = _scene(sample_rgb=(200, 0, 0))
        p = _pipeline(img)
        p.start()
        before = p.analyze_once()
        p.state.ccm = ((0.0, 0.0, 1.0), (0.0, 1.0, 0.0), (1.0, 0.0, 0.0))
        after = p.analyze_once()
        assert before.b > 0 > after.b

    def test_gray_calibration_resets_ccm(self):
        p = _pipeline()
        p.start()
        p.state.ccm = ((1.1, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 0.9))
        cal = p.calibrate_gray()
        assert p.state.ccm == IDENTITY_CCM
        assert cal.gains == p.state.gains

    def test_calibration_without_frame(self):
        p = _pipeline(source=EmptySource())
        p.start()
        with pytest.raises(NoFrameError):
            p.calibrate_white()
        assert p.state.gains == GainVector()

    def test_hints_reported(self):
        img = _scene()
        img[30:40, 30:70] = 255
        p = _pipeline(img)
        p.start()
        r = p.analyze_once()
        assert r.glare == pytest.approx(25.0)
        assert any("glare" in h.lower() for h in r.hints)


def _sample_count():
    ys, xs = np.mgrid[0:40:3, 0:40:3]
    return int(np.count_nonzero((xs - 20) ** 2 + (ys - 20) ** 2 <= 400))


class TestMeasure:

    def test_averaged_entry(self):
        sleeps = []
        p = _pipeline(sleeps=sleeps)
        p.start()
        entry = p.measure(frame_count=5, delay_ms=25)

        assert sleeps == [0.025] * 4
        assert p.state.log == [entry]
        assert entry.time == FIXED_TIME
        assert entry.L == pytest.approx(80.6, abs=1e-9)
        assert entry.score == pytest.approx(106.7, abs=1e-9)
        assert entry.category == "Very Light"
        assert entry.model == "formula"
        assert entry.gate == "normal"
        assert entry.mode == "ground"
        assert entry.device == "test-rig"
        assert entry.glare == 0.0
        assert entry.readiness == 98.4

    def test_defaults_from_config(self):
        sleeps = []
        p = _pipeline(sleeps=sleeps)
        p.start()
        p.measure()
        assert len(sleeps) == 17

    def test_strict_gate_rejects_glare(self):
        img = _scene()
        img[30, 30:70] = 255
        img[31, 30:46] = 255
        p = _pipeline(img)
        p.start()
        p.set_gate("strict")
        with pytest.raises(QualityGateRejected) as exc:
            p.measure(frame_count=3)
        assert exc.value.signal is GateSignal.GLARE
        assert exc.value.value == pytest.approx(3.5)
        assert exc.value.limit == 2.0
        assert p.state.log == []

    def test_relaxed_gate_accepts_same_glare(self):
        img = _scene()
        img[30, 30:70] = 255
        img[31, 30:46] = 255
        p = _pipeline(img)
        p.start()
        p.set_gate("relaxed")
        entry = p.measure(frame_count=3)
        assert entry.glare == 3.5
        assert entry.gate == "relaxed"

    def test_no_frame(self):
        p = _pipeline(source=EmptySource())
        p.start()
        with pytest.raises(NoFrameError):
            p.measure(frame_count=2)
        assert p.state.log == []

    def test_invalid_frame_count(self):
        p = _pipeline()
        p.start()
        with pytest.raises(ValueError):
            p.measure(frame_count=0)

    def test_uses_fitted_model(self):
        p = _pipeline()
        p.start()
        p.add_calibration_point(60.0, LabColor(40.0, 0.0, 0.0))
        p.add_calibration_point(80.0, LabColor(55.0, 0.0, 0.0))
        p.fit_linear_model(ridge_lambda=0.0)
        entry = p.measure(frame_count=2)
        assert entry.model == "linear"
        expected = 60.0 + (80.0 - 40.0) * 20.0 / 15.0 + (entry.L - 80.0) * 20.0 / 15.0
        assert entry.score == pytest.approx(expected, abs=0.1)


class TestModelCalibration:

    def test_point_from_live_pass(self):
        p = _pipeline()
        p.start()
        point = p.add_calibration_point(95)
        assert point.reference_score == 95.0
        assert point.L == pytest.approx(80.604, abs=1e-2)
        assert p.state.calibration_points == [point]

    def test_point_without_frame(self):
        p = _pipeline(source=EmptySource())
        p.start()
        with pytest.raises(NoFrameError):
            p.add_calibration_point(50.0)
        assert p.state.calibration_points == []

    def test_linear_fit_activates_model(self):
        p = _pipeline()
        p.add_calibration_point(60.0, LabColor(40.0, 0.0, 0.0))
        p.add_calibration_point(80.0, LabColor(55.0, 0.0, 0.0))
        model = p.fit_linear_model(ridge_lambda=0.0)
        assert model.kind is ModelKind.LINEAR
        assert model.weights[1] == pytest.approx(20.0 / 15.0, abs=1e-6)
        assert p.state.model is model

    def test_failed_fit_keeps_previous_model(self):
        p = _pipeline()
        p.add_calibration_point(60.0, LabColor(40.0, 0.0, 0.0))
        p.add_calibration_point(80.0, LabColor(55.0, 0.0, 0.0))
        model = p.fit_linear_model()
        with pytest.raises(InsufficientCalibrationPointsError):
            p.fit_polynomial_model()
        assert p.state.model is model

    def test_polynomial_fit(self):
        p = _pipeline()
        for score, lab in [(40, (30, 10, 20)), (55, (42, 8, 18)), (70, (55, 6, 15))]:
            p.add_calibration_point(score, LabColor(*lab))
        model = p.fit_polynomial_model()
        assert model.kind is ModelKind.POLYNOMIAL
        assert p.state.model_label == "poly"

    def test_clear(self):
        p = _pipeline()
        p.add_calibration_point(60.0, LabColor(40.0, 0.0, 0.0))
        p.add_calibration_point(80.0, LabColor(55.0, 0.0, 0.0))
        p.fit_linear_model()
        p.clear_model()
        p.clear_calibration_points()
        assert p.state.model is None
        assert p.state.calibration_points == []


class TestSettings:

    def test_setters(self):
        p = _pipeline()
        p.set_scale(1.5)
        p.set_offset(-3)
        p.set_scheme("commercial")
        p.set_gate("relaxed")
        p.set_mode("bean")
        settings = p.state.to_settings().to_dict()
        assert settings["scale"] == 1.5
        assert settings["offset"] == -3.0
        assert settings["scheme"] == "commercial"
        assert settings["gate"] == "relaxed"
        assert settings["mode"] == "bean"

    def test_unknown_gate(self):
        p = _pipeline()
        with pytest.raises(ValueError):
            p.set_gate("lenient")
        assert p.state.gate == "normal"

    def test_save_and_restore(self):
        store = MemorySettingsStore()
        p = _pipeline(store=store)
        p.set_scale(1.5)
        p.save()
        p.set_scale(2.0)
        assert p.restore() is True
        assert p.state.scale == 1.5

    def test_restore_empty_store(self):
        p = _pipeline()
        assert p.restore() is False
        assert p.state.scale == 1.2

    def test_restore_malformed_leaves_state(self):
        store = MemorySettingsStore({"gains": {"r": 1, "g": 1, "b": 1}, "scale": 3.0})
        p = _pipeline(store=store)
        with pytest.raises(SettingsFormatError):
            p.restore()
        assert p.state.scale == 1.2

    def test_reset(self):
        store = MemorySettingsStore()
        p = _pipeline(store=store)
        p.start()
        p.set_scale(1.5)
        p.save()
        p.measure(frame_count=1)
        p.reset()
        assert p.status is PipelineStatus.IDLE
        assert p.state.log == []
        assert p.state.scale == 1.2
        assert store.load() is None


class TestExport:

    def test_model_roundtrip_between_sessions(self):
        a = _pipeline()
        a.set_offset(4.0)
        a.add_calibration_point(60.0, LabColor(40.0, 0.0, 0.0))
        a.add_calibration_point(80.0, LabColor(55.0, 0.0, 0.0))
        a.fit_linear_model()

        b = _pipeline()
        b.import_model(a.export_model())
        assert b.state.to_settings() == a.state.to_settings()

    def test_malformed_import_applies_nothing(self):
        p = _pipeline()
        bad = '{"gains": {"r": 1, "g": 1, "b": 1}, "scale": "x", "offset": 1}'
        with pytest.raises(SettingsFormatError):
            p.import_model(bad)
        assert p.state.scale == 1.2
        assert p.state.offset == 10.0

    @pytest.mark.parametrize("bad", [
        '{"gains": {"r": 1, "g": 1, "b": 1}, "scale": 1.5, "offset": 1, "gate": ["strict"]}',
        '{"gains": {"r": 1, "g": 1, "b": 1}, "scale": 1' + "0" * 400 + ', "offset": 1}',
    ])
    def test_unhashable_or_oversized_import_rejected(self, bad, caplog):
        p = _pipeline()
        with caplog.at_level("WARNING", logger="agtroncam.measure.pipeline"):
            with pytest.raises(SettingsFormatError):
                p.import_model(bad)
        assert "Rejected settings import" in caplog.text
        assert p.state.scale == 1.2
        assert p.state.gate == "normal"

    def test_csv(self):
        p = _pipeline()
        p.start()
        p.measure(frame_count=2)
        p.measure(frame_count=2)
        lines = p.export_csv().splitlines()
        assert len(lines) == 3
        assert lines[0].startswith('"time","L","a","b","Agtron"')

    def test_snapshot(self):
        from PIL import Image

        p = _pipeline()
        p.start()
        with Image.open(io.BytesIO(p.export_snapshot())) as img:
            assert img.size == (40, 40)
            assert img.getpixel((0, 0)) == (200, 200, 200)

    def test_snapshot_without_frame(self):
        p = _pipeline(source=EmptySource())
        p.start()
        with pytest.raises(NoFrameError):
            p.export_snapshot()
