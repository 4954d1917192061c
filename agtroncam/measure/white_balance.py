# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
White-balance calibration and correction.

Gains are derived from a neutral reference patch (white paper or a gray
card) so that, after correction, its three channel means are equal. The
color correction matrix (CCM) is applied after the gains and stays the
identity unless a caller supplies one.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

from agtroncam.schema import IDENTITY_CCM, GainVector

logger = logging.getLogger(__name__)


def channel_means(samples: NDArray[np.uint8]) -> tuple[float, float, float]:
    """
    Per-channel means of an (N, 3) sample set.

    An empty set yields (0, 0, 0).
    """
    samples = np.asarray(samples, dtype=np.float64).reshape(-1, 3)
    if len(samples) == 0:
        return 0.0, 0.0, 0.0
    r, g, b = samples.mean(axis=0)
    return float(r), float(g), float(b)


def compute_gains(
    samples: NDArray[np.uint8],
) -> tuple[GainVector, tuple[float, float, float]]:
    """
    Compute white-balance gains from reference-patch samples.

    gain_c = avg / mean_c, with avg = (mean_r + mean_g + mean_b) / 3.
    A zero channel mean is treated as 1 to avoid division by zero.

    Args:
        samples: Array of shape (N, 3) from the reference patch

    Returns:
        (gains, (mean_r, mean_g, mean_b)) so callers can show the raw means
    """
    means = channel_means(samples)
    avg = sum(means) / 3.0
    r, g, b = (avg / (m if m != 0.0 else 1.0) for m in means)
    gains = GainVector(r=r, g=g, b=b)
    logger.debug("Reference means %s -> gains %s", means, gains.as_tuple())
    return gains, means


def apply_correction(
    samples: NDArray[np.uint8],
    gains: GainVector,
    ccm=IDENTITY_CCM,
) -> NDArray[np.float64]:
    """
    Apply gains and CCM to uint8 samples.

    Args:
        samples: Array of shape (N, 3) uint8
        gains: Per-channel multiplicative gains
        ccm: 3x3 matrix applied to the gain-corrected, normalized RGB

    Returns:
        Array of shape (N, 3) of sRGB values clipped to [0, 1]
    """
    rgb = np.asarray(samples, dtype=np.float64).reshape(-1, 3)
    corrected = np.clip(rgb * np.array(gains.as_tuple()) / 255.0, 0.0, 1.0)

    matrix = np.asarray(ccm, dtype=np.float64)
    if not np.array_equal(matrix, np.eye(3)):
        corrected = np.clip(corrected @ matrix.T, 0.0, 1.0)

    return corrected
