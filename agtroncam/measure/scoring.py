# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Roast score prediction, model fitting and categorization.

Scores are Agtron-like: higher means a lighter roast. Without a fitted
model the score is a tunable linear function of lightness,
``scale * L + offset``. With calibration points a model is fit by
(optionally ridge-regularized) least squares:

- Linear:     score = w0 + w1*L
- Polynomial: score = w0 + w1*L + w2*a + w3*b + w4*L²
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from agtroncam.errors import InsufficientCalibrationPointsError, ModelFitError
from agtroncam.schema import (
    DEFAULT_OFFSET,
    DEFAULT_SCALE,
    MIN_POINTS,
    CalibrationPoint,
    CategoryScheme,
    LabColor,
    ModelKind,
    ScoreModel,
)

logger = logging.getLogger(__name__)

# Empirical regularization strengths, not derived
DEFAULT_RIDGE = {
    ModelKind.LINEAR: 0.01,
    ModelKind.POLYNOMIAL: 0.1,
}


# =============================================================================
# Prediction
# =============================================================================


def _features(L: float, a: float, b: float, kind: ModelKind) -> list[float]:
    if kind is ModelKind.LINEAR:
        return [1.0, L]
    return [1.0, L, a, b, L * L]


def predict(
    lab: LabColor,
    model: Optional[ScoreModel] = None,
    scale: float = DEFAULT_SCALE,
    offset: float = DEFAULT_OFFSET,
) -> float:
    """
    Predict the roast score for a Lab color.

    Uses the fitted model when one is given, otherwise ``scale * L + offset``.
    """
    if model is None:
        return scale * lab.L + offset
    features = _features(lab.L, lab.a, lab.b, model.kind)
    return float(sum(w * x for w, x in zip(model.weights, features)))


# =============================================================================
# Least Squares
# =============================================================================


def design_matrix(
    points: Sequence[CalibrationPoint],
    kind: ModelKind,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Build the design matrix X and target vector y for a fit.

    Rows are ``[1, L]`` for linear and ``[1, L, a, b, L²]`` for polynomial.
    """
    X = np.array([_features(p.L, p.a, p.b, kind) for p in points], dtype=np.float64)
    y = np.array([p.reference_score for p in points], dtype=np.float64)
    return X, y


def solve_linear_system(
    A: NDArray[np.float64],
    y: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    Solve A w = y by Gaussian elimination with partial pivoting.

    At each step the remaining row with the largest-magnitude entry in
    the pivot column is swapped into place.

    Raises:
        ModelFitError: If the system is singular
    """
    A = np.array(A, dtype=np.float64)
    y = np.array(y, dtype=np.float64)
    n = A.shape[0]
    if A.shape != (n, n) or y.shape != (n,):
        raise ValueError(f"Expected square system, got A{A.shape} and y{y.shape}")

    scale = max(1.0, float(np.abs(A).max()))
    tolerance = scale * n * np.finfo(np.float64).eps

    for col in range(n):
        pivot = col + int(np.argmax(np.abs(A[col:, col])))
        if abs(A[pivot, col]) <= tolerance:
            raise ModelFitError("Normal equations are singular; add more varied calibration points")
        if pivot != col:
            A[[col, pivot]] = A[[pivot, col]]
            y[[col, pivot]] = y[[pivot, col]]

        factors = A[col + 1:, col] / A[col, col]
        A[col + 1:, col:] -= factors[:, None] * A[col, col:]
        y[col + 1:] -= factors * y[col]

    w = np.zeros(n, dtype=np.float64)
    for row in range(n - 1, -1, -1):
        w[row] = (y[row] - A[row, row + 1:] @ w[row + 1:]) / A[row, row]
    return w


def fit_model(
    points: Sequence[CalibrationPoint],
    kind: ModelKind,
    ridge_lambda: Optional[float] = None,
) -> ScoreModel:
    """
    Fit a score model to calibration points.

    Solves the ridge normal equations (XᵀX + λI) w = Xᵀy.

    Args:
        points: Calibration points (reference score + measured Lab)
        kind: Model family to fit
        ridge_lambda: Regularization strength; defaults to 0.01 for linear
            and 0.1 for polynomial. Pass 0 for plain least squares.

    Raises:
        InsufficientCalibrationPointsError: Fewer points than the family needs
        ModelFitError: The system is singular
    """
    required = MIN_POINTS[kind]
    if len(points) < required:
        raise InsufficientCalibrationPointsError(kind, required, len(points))

    lam = DEFAULT_RIDGE[kind] if ridge_lambda is None else ridge_lambda
    if lam < 0.0:
        raise ValueError(f"Ridge lambda must be >= 0, got {lam}")

    X, y = design_matrix(points, kind)
    A = X.T @ X + lam * np.eye(X.shape[1])
    w = solve_linear_system(A, X.T @ y)

    model = ScoreModel(kind=kind, weights=tuple(float(v) for v in w))
    logger.info(
        "Fitted %s model on %d points (lambda=%g): %s",
        kind.value, len(points), lam, ", ".join(f"{v:.4f}" for v in w),
    )
    return model


# =============================================================================
# Categories
# =============================================================================


@dataclass(frozen=True, slots=True)
class Category:
    """
    A roast category bin.

    Attributes:
        name: Display name ("Very Light" .. "Very Dark")
        min: Lowest score in the bin (inclusive)
        color: Badge color as hex
        description: Short flavor description
    """
    name: str
    min: float
    color: str
    description: str


_DESCRIPTIONS = (
    ("Very Light", "#f59e0b", "Bright, very acidic, origin character dominant"),
    ("Light", "#fb923c", "Fresh acidity, high sweetness"),
    ("Medium-Light", "#f97316", "Balanced, leaning bright"),
    ("Medium", "#ea580c", "Balanced; stable body and sweetness"),
    ("Medium-Dark", "#b45309", "Fuller body, roast flavors emerging"),
    ("Dark", "#92400e", "Bitter/roasty dominant, heavy body"),
    ("Very Dark", "#7c2d12", "Very dark, oily surface"),
)


def _scheme(mins: Sequence[float]) -> tuple[Category, ...]:
    return tuple(
        Category(name=name, min=m, color=color, description=desc)
        for (name, color, desc), m in zip(_DESCRIPTIONS, (*mins, -math.inf))
    )


CATEGORY_SCHEMES = {
    CategoryScheme.GOURMET: _scheme((75, 65, 55, 45, 35, 25)),
    CategoryScheme.COMMERCIAL: _scheme((65, 55, 47, 40, 33, 25)),
}


def classify(score: float, scheme: CategoryScheme = CategoryScheme.GOURMET) -> Category:
    """
    Map a score to its roast category.

    Bins are scanned from the highest minimum down; the last bin catches
    everything below the others.
    """
    table = CATEGORY_SCHEMES[scheme]
    for category in table:
        if score >= category.min:
            return category
    return table[-1]


def gauge_percent(score: float) -> float:
    """Position of a score on a 0-100 display gauge spanning -5..85."""
    return max(0.0, min(1.0, (score + 5.0) / 90.0)) * 100.0
