# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Color space conversions.

Conversion chain: sRGB → Linear RGB → CIE XYZ (D65) → CIE L*a*b*

References:
- sRGB companding: IEC 61966-2-1
- XYZ → Lab: CIE 15 with the exact ε = 216/24389 and κ = 24389/27

All conversions are vectorized NumPy and operate on arrays of shape (..., 3).
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from agtroncam.schema import LabColor


# =============================================================================
# sRGB ↔ Linear RGB
# =============================================================================


def srgb_to_linear(srgb: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Convert sRGB values [0,1] to linear RGB.

    sRGB uses a piecewise gamma curve:
    - For values <= 0.04045: linear/12.92
    - For values > 0.04045: ((value + 0.055) / 1.055) ^ 2.4
    """
    srgb = np.asarray(srgb, dtype=np.float64)
    linear = np.where(
        srgb <= 0.04045,
        srgb / 12.92,
        np.power((np.maximum(srgb, 0.0) + 0.055) / 1.055, 2.4)
    )
    return linear


def linear_to_srgb(linear: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Convert linear RGB to sRGB values [0,1].

    Inverse of srgb_to_linear.
    """
    linear = np.asarray(linear, dtype=np.float64)
    # Clip negative values to avoid NaN in power function
    linear_safe = np.maximum(linear, 0.0)
    srgb = np.where(
        linear_safe <= 0.0031308,
        linear_safe * 12.92,
        1.055 * np.power(linear_safe, 1.0 / 2.4) - 0.055
    )
    return np.clip(srgb, 0.0, 1.0)


# =============================================================================
# Linear RGB → XYZ
# =============================================================================

# sRGB (D65) to XYZ, 7 significant digits
_RGB_TO_XYZ = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041],
], dtype=np.float64)

# D65 reference white
D65_WHITE = np.array([0.95047, 1.00000, 1.08883], dtype=np.float64)

_EPSILON = 216.0 / 24389.0
_KAPPA = 24389.0 / 27.0


def rgb_to_xyz(rgb: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Convert sRGB [0,1] to CIE XYZ (D65, Y of white = 1.0).

    Args:
        rgb: Array of shape (..., 3) with companded sRGB values

    Returns:
        Array of shape (..., 3) with X, Y, Z
    """
    linear = srgb_to_linear(rgb)
    return np.einsum('...j,ij->...i', linear, _RGB_TO_XYZ)


# =============================================================================
# XYZ → Lab
# =============================================================================


def _lab_f(t: NDArray[np.float64]) -> NDArray[np.float64]:
    return np.where(
        t > _EPSILON,
        np.cbrt(t),
        (_KAPPA * t + 16.0) / 116.0,
    )


def xyz_to_lab(xyz: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Convert CIE XYZ to CIE L*a*b* relative to the D65 white point.

    Args:
        xyz: Array of shape (..., 3)

    Returns:
        Array of shape (..., 3) with L*, a*, b*
    """
    xyz = np.asarray(xyz, dtype=np.float64)
    f = _lab_f(xyz / D65_WHITE)
    fx = f[..., 0]
    fy = f[..., 1]
    fz = f[..., 2]

    L = 116.0 * fy - 16.0
    a = 500.0 * (fx - fy)
    b = 200.0 * (fy - fz)

    return np.stack([L, a, b], axis=-1)


# =============================================================================
# Convenience: sRGB → Lab (full chain)
# =============================================================================


def srgb_to_lab(srgb: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Convert sRGB [0,1] to CIE L*a*b*.

    Full chain: sRGB → Linear RGB → XYZ → Lab
    """
    return xyz_to_lab(rgb_to_xyz(srgb))


def srgb_uint8_to_lab(pixels: NDArray[np.uint8]) -> NDArray[np.float64]:
    """
    Convert uint8 sRGB pixels [0,255] to CIE L*a*b*.

    Args:
        pixels: Array of shape (..., 3) with uint8 sRGB values [0, 255]

    Returns:
        Array of shape (..., 3) with Lab values
    """
    srgb_float = np.asarray(pixels).astype(np.float64) / 255.0
    return srgb_to_lab(srgb_float)


def mean_lab(lab: NDArray[np.float64]) -> LabColor:
    """Average an (N, 3) array of Lab values into one LabColor."""
    if len(lab) == 0:
        raise ValueError("Cannot average an empty set of Lab values")
    L, a, b = np.asarray(lab, dtype=np.float64).reshape(-1, 3).mean(axis=0)
    return LabColor(L=float(L), a=float(a), b=float(b))

