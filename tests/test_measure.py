# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""Tests for the still-image estimate() API and the command line."""

import json

import numpy as np
import pytest

from agtroncam import GainVector, SettingsBlob, estimate
from agtroncam.__main__ import main
from agtroncam.runtime import export_json


def _scene(size=200, sample=(200, 200, 200), reference=(250, 250, 248)):
    """Uniform coffee with white paper under the default reference box.

    At 200x200 the reference box maps to x 154..189, y 10..34.
    """
    img = np.full((size, size, 3), sample, dtype=np.uint8)
    img[10:36, 154:190] = reference
    return img


class TestEstimateArray:

    def test_uncalibrated(self):
        r = estimate(_scene())
        assert r.L == pytest.approx(80.604, abs=1e-2)
        assert r.score == pytest.approx(1.2 * r.L + 10.0)
        assert r.category.name == "Very Light"

    def test_white_calibration(self):
        r = estimate(_scene(), calibrate_white=True)
        assert round(r.L, 1) == 80.5

    def test_reference_box_outside_sample(self):
        r = estimate(_scene(reference=(255, 0, 0)))
        assert r.a == pytest.approx(0.0, abs=1e-3)

    def test_rgba_accepted(self):
        img = np.dstack([_scene(), np.full((200, 200), 255, dtype=np.uint8)])
        r = estimate(img)
        assert r.L == pytest.approx(80.604, abs=1e-2)

    def test_settings_applied(self):
        settings = SettingsBlob(gains=GainVector(), scale=1.0, offset=0.0)
        r = estimate(_scene(), settings=settings)
        assert r.score == pytest.approx(r.L)

    def test_scheme_override(self):
        img = _scene(sample=(110, 100, 90))
        gourmet = estimate(img, settings=SettingsBlob(gains=GainVector(), scale=1.2, offset=0.0))
        commercial = estimate(
            img,
            scheme="commercial",
            settings=SettingsBlob(gains=GainVector(), scale=1.2, offset=0.0),
        )
        assert gourmet.score == pytest.approx(commercial.score)
        assert gourmet.category.name == "Medium"
        assert commercial.category.name == "Medium-Light"

    def test_bean_mode_on_uniform_image(self):
        assert estimate(_scene(), mode="bean").L == pytest.approx(estimate(_scene()).L)

    def test_bad_shape(self):
        with pytest.raises(ValueError, match="shape"):
            estimate(np.zeros((10, 10), dtype=np.uint8))

    def test_bad_dtype(self):
        with pytest.raises(ValueError, match="uint8"):
            estimate(np.zeros((10, 10, 3), dtype=np.float32))

    def test_bad_type(self):
        with pytest.raises(TypeError):
            estimate([[0, 0, 0]])


class TestEstimateFile:

    def test_png(self, tmp_path):
        from PIL import Image

        path = tmp_path / "grounds.png"
        Image.fromarray(_scene()).save(path)
        r = estimate(path, calibrate_white=True)
        assert round(r.L, 1) == 80.5

    def test_grayscale_file_converted(self, tmp_path):
        from PIL import Image

        path = tmp_path / "gray.png"
        Image.fromarray(np.full((50, 50), 128, dtype=np.uint8)).save(path)
        r = estimate(str(path))
        assert r.L == pytest.approx(53.585, abs=1e-2)


class TestCommandLine:

    def test_text_output(self, tmp_path, capsys):
        from PIL import Image

        path = tmp_path / "grounds.png"
        Image.fromarray(_scene()).save(path)
        assert main([str(path), "--calibrate-white"]) == 0
        out = capsys.readouterr().out
        assert "L*=80.5" in out
        assert "Agtron" in out

    def test_json_output(self, tmp_path, capsys):
        from PIL import Image

        path = tmp_path / "grounds.png"
        Image.fromarray(_scene()).save(path)
        assert main([str(path), "--json", "--mode", "bean"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["category"] == "Very Light"
        assert data["L"] == pytest.approx(80.604, abs=1e-2)

    def test_settings_file(self, tmp_path, capsys):
        from PIL import Image

        image = tmp_path / "grounds.png"
        Image.fromarray(_scene()).save(image)
        settings = tmp_path / "calib.json"
        settings.write_text(export_json(SettingsBlob(gains=GainVector(), scale=1.0, offset=0.0)))
        assert main([str(image), "--settings", str(settings), "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["score"] == pytest.approx(data["L"])

    def test_missing_file(self, tmp_path):
        assert main([str(tmp_path / "nope.png")]) == 1

    def test_malformed_settings(self, tmp_path):
        from PIL import Image

        image = tmp_path / "grounds.png"
        Image.fromarray(_scene()).save(image)
        settings = tmp_path / "calib.json"
        settings.write_text('{"version": 2}')
        assert main([str(image), "--settings", str(settings)]) == 1

    def test_settings_with_list_gate(self, tmp_path):
        from PIL import Image

        image = tmp_path / "grounds.png"
        Image.fromarray(_scene()).save(image)
        settings = tmp_path / "calib.json"
        settings.write_text(
            '{"gains": {"r": 1, "g": 1, "b": 1}, "scale": 1.2, "offset": 10, "gate": ["strict"]}'
        )
        assert main([str(image), "--settings", str(settings)]) == 1
