# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Measurement core for AgtronCam.

Color conversion, region sampling, white balance, quality signals,
score models and the pipeline that ties them together.
"""

from agtroncam.measure.extract import estimate
from agtroncam.measure.pipeline import (
    MeasurementPipeline,
    PassResult,
    PipelineConfig,
    PipelineStatus,
    WhiteCalibration,
)

__all__ = [
    "estimate",
    "MeasurementPipeline",
    "PipelineConfig",
    "PipelineStatus",
    "PassResult",
    "WhiteCalibration",
]
