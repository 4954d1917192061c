# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Measurement quality signals.

Three signals describe whether the scene is fit to measure:

- Glare: share of blown-out pixels in the sample region
- White-balance deviation: how far the reference patch is from neutral
- Stability: distance of the current L* from its moving average

They are combined into an advisory readiness score and checked against
a gate profile before an averaged measurement is recorded.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from agtroncam.schema import QualityGateProfile
from agtroncam.measure.white_balance import channel_means

GLARE_THRESHOLD = 250


class GateSignal(Enum):
    """Quality signal that can fail the gate."""
    GLARE = "glare"
    WB_DEVIATION = "wb_deviation"
    STABILITY = "stability"


def glare_percent(samples: NDArray[np.uint8], threshold: int = GLARE_THRESHOLD) -> float:
    """
    Percentage of samples whose brightest channel is >= threshold.

    Returns 0.0 for an empty sample set.
    """
    samples = np.asarray(samples).reshape(-1, 3)
    if len(samples) == 0:
        return 0.0
    hot = np.count_nonzero(samples.max(axis=1) >= threshold)
    return 100.0 * hot / len(samples)


@dataclass(frozen=True, slots=True)
class WhiteBalanceDeviation:
    """
    Reference-patch deviation from neutral.

    Attributes:
        per_channel: (R, G, B) channel mean minus the grand mean
        max_deviation: Largest absolute per-channel deviation
    """
    per_channel: tuple[float, float, float]
    max_deviation: float


def white_balance_deviation(samples: NDArray[np.uint8]) -> WhiteBalanceDeviation:
    """Measure how far reference-patch samples are from neutral gray."""
    means = channel_means(samples)
    grand = sum(means) / 3.0
    per_channel = tuple(m - grand for m in means)
    return WhiteBalanceDeviation(
        per_channel=per_channel,
        max_deviation=max(abs(d) for d in per_channel),
    )


class StabilityTracker:
    """
    Exponential moving average of L*.

    ema = L on the first update, then alpha * L + (1 - alpha) * ema.
    """

    def __init__(self, alpha: float = 0.2) -> None:
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"EMA alpha must be in (0, 1], got {alpha}")
        self.alpha = alpha
        self.ema: Optional[float] = None

    def update(self, L: float) -> float:
        """Fold a new L* into the average and return the average."""
        if self.ema is None:
            self.ema = L
        else:
            self.ema = self.alpha * L + (1.0 - self.alpha) * self.ema
        return self.ema

    def delta(self, L: float) -> float:
        """|ema - L|; lower means a steadier scene. 0 before any update."""
        if self.ema is None:
            return 0.0
        return abs(self.ema - L)

    def reset(self) -> None:
        self.ema = None


def readiness_score(glare: float, max_wb_deviation: float, stability: float) -> float:
    """
    Combine the quality signals into a 0-100 readiness score.

    Penalties are capped per signal: glare up to 50, white balance up
    to 30, stability up to 20.
    """
    score = 100.0
    score -= min(50.0, glare * 5.0)
    score -= min(30.0, max_wb_deviation * 1.2)
    score -= min(20.0, stability * 6.0)
    return max(0.0, min(100.0, score))


def check_gate(
    profile: QualityGateProfile,
    glare: float,
    wb_deviation: float,
    stability: float,
) -> Optional[tuple[GateSignal, float, float]]:
    """
    Check the signals against a gate profile.

    Returns:
        None if accepted, else (signal, value, limit) for the first
        failing signal in the order glare, WB deviation, stability
    """
    checks = (
        (GateSignal.GLARE, glare, profile.glare_max),
        (GateSignal.WB_DEVIATION, wb_deviation, profile.wb_deviation_max),
        (GateSignal.STABILITY, stability, profile.stability_max),
    )
    for signal, value, limit in checks:
        if value > limit:
            return signal, value, limit
    return None


_HINTS = {
    GateSignal.GLARE: "Reduce glare: use a diffuser or tilt the camera slightly.",
    GateSignal.WB_DEVIATION: "White calibration recommended: keep plain white paper inside the reference box.",
    GateSignal.STABILITY: "Lighting is moving: wait for the camera to settle.",
}


def quality_hints(
    profile: QualityGateProfile,
    glare: float,
    wb_deviation: float,
    stability: float,
) -> list[str]:
    """Advisory messages for every signal above its gate threshold."""
    hints = []
    if glare > profile.glare_max:
        hints.append(_HINTS[GateSignal.GLARE])
    if wb_deviation > profile.wb_deviation_max:
        hints.append(_HINTS[GateSignal.WB_DEVIATION])
    if stability > profile.stability_max:
        hints.append(_HINTS[GateSignal.STABILITY])
    return hints
