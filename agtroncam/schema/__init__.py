# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Schema definitions for measurement sessions.

Values (colors, gains, models, calibration points, log entries) are
frozen dataclasses. ``SessionState`` is the single mutable context.
"""

from agtroncam.schema.geometry import Rect
from agtroncam.schema.session import (
    DEFAULT_GATE,
    DEFAULT_OFFSET,
    DEFAULT_SCALE,
    GATE_PROFILES,
    IDENTITY_CCM,
    MIN_POINTS,
    MODEL_PARAMETERS,
    SETTINGS_VERSION,
    CalibrationPoint,
    CategoryScheme,
    GainVector,
    LabColor,
    MeasurementLogEntry,
    ModelKind,
    QualityGateProfile,
    SampleMode,
    ScoreModel,
    SessionState,
    SettingsBlob,
    get_gate_profile,
    parse_ccm,
)

__all__ = [
    # Version and defaults
    "SETTINGS_VERSION",
    "DEFAULT_SCALE",
    "DEFAULT_OFFSET",
    "DEFAULT_GATE",
    "IDENTITY_CCM",
    # Enumerations
    "CategoryScheme",
    "SampleMode",
    "ModelKind",
    "MODEL_PARAMETERS",
    "MIN_POINTS",
    # Value types
    "LabColor",
    "GainVector",
    "CalibrationPoint",
    "ScoreModel",
    "QualityGateProfile",
    "GATE_PROFILES",
    "get_gate_profile",
    "MeasurementLogEntry",
    "parse_ccm",
    # Geometry
    "Rect",
    # Persistence and session
    "SettingsBlob",
    "SessionState",
]
