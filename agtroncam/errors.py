# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Error taxonomy for AgtronCam.

Every error is locally recoverable: the session state is left exactly as
it was before the failing command, and the caller may retry after fixing
the physical setup or the inputs.
"""

from __future__ import annotations


class AgtronCamError(Exception):
    """Base class for all AgtronCam errors."""


class CaptureUnavailableError(AgtronCamError):
    """The capture session could not be started (no camera, no permission)."""


class NoFrameError(AgtronCamError):
    """No usable frame data was available for a measurement."""


class QualityGateRejected(AgtronCamError):
    """
    A measurement pre-check exceeded a quality gate threshold.

    Attributes:
        signal: The violated signal (a ``GateSignal`` member)
        value: Observed value of the signal
        limit: Threshold of the active gate profile
    """

    def __init__(self, signal, value: float, limit: float) -> None:
        self.signal = signal
        self.value = value
        self.limit = limit
        name = getattr(signal, "value", signal)
        super().__init__(
            f"Quality gate rejected measurement: {name} {value:.2f} exceeds {limit:.2f}"
        )


class InsufficientCalibrationPointsError(AgtronCamError, ValueError):
    """A model fit was requested with fewer points than the model family requires."""

    def __init__(self, kind, required: int, available: int) -> None:
        self.kind = kind
        self.required = required
        self.available = available
        name = getattr(kind, "value", kind)
        super().__init__(
            f"{name} model needs at least {required} calibration points, "
            f"got {available}"
        )


class ModelFitError(AgtronCamError, ValueError):
    """The normal equations could not be solved (singular system)."""


class SettingsFormatError(AgtronCamError, ValueError):
    """An imported or stored settings blob is malformed."""
