# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
AgtronCam -- Camera-based roast level estimation for coffee.

Samples a circle of coffee in a camera frame, corrects white balance
from a reference patch, converts to CIE L*a*b* and maps the color to an
Agtron-like roast score.

Quick start::

    from agtroncam import estimate

    r = estimate("grounds.jpg", calibrate_white=True)
    r.score          # Agtron-like score, higher = lighter
    r.category.name  # "Medium", "Dark", ...

Live capture::

    from agtroncam import MeasurementPipeline
    from agtroncam.runtime import CenteredLayout, OpenCVFrameSource

    p = MeasurementPipeline(OpenCVFrameSource(), CenteredLayout(1280, 720))
    p.start()
    p.calibrate_white()
    entry = p.measure()
"""

from __future__ import annotations

__version__ = "1.0.0"

from agtroncam.errors import (
    AgtronCamError,
    CaptureUnavailableError,
    InsufficientCalibrationPointsError,
    ModelFitError,
    NoFrameError,
    QualityGateRejected,
    SettingsFormatError,
)
from agtroncam.measure import (
    MeasurementPipeline,
    PassResult,
    PipelineConfig,
    PipelineStatus,
    estimate,
)
from agtroncam.schema import (
    CalibrationPoint,
    CategoryScheme,
    GainVector,
    LabColor,
    MeasurementLogEntry,
    ModelKind,
    SampleMode,
    ScoreModel,
    SessionState,
    SettingsBlob,
)

__all__ = [
    # Core API
    "estimate",
    "MeasurementPipeline",
    "PipelineConfig",
    "PipelineStatus",
    "PassResult",
    # Types (commonly needed)
    "LabColor",
    "GainVector",
    "CalibrationPoint",
    "ScoreModel",
    "ModelKind",
    "CategoryScheme",
    "SampleMode",
    "MeasurementLogEntry",
    "SessionState",
    "SettingsBlob",
    # Errors
    "AgtronCamError",
    "CaptureUnavailableError",
    "NoFrameError",
    "QualityGateRejected",
    "InsufficientCalibrationPointsError",
    "ModelFitError",
    "SettingsFormatError",
    # Version
    "__version__",
]
