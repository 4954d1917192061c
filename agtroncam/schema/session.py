# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Session data model for roast-level estimation.

Design principles:
- Values are immutable: colors, gains, models, calibration points and log
  entries are frozen dataclasses.
- One mutable context: ``SessionState`` holds everything that persists
  across frames (gains, CCM, score model, calibration points, log) and is
  owned by the measurement pipeline.
- Strict persistence: the settings blob is versioned and validated on the
  way in. A malformed blob raises ``SettingsFormatError`` and nothing is
  applied.

CIE L*a*b*:
- L (Lightness): 0 = black, 100 = diffuse white
- a: green (-) to red (+)
- b: blue (-) to yellow (+)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from agtroncam.errors import SettingsFormatError


# =============================================================================
# Schema Version and Defaults
# =============================================================================

SETTINGS_VERSION = 1

DEFAULT_SCALE = 1.20
DEFAULT_OFFSET = 10.0


# =============================================================================
# Enumerations
# =============================================================================


class CategoryScheme(Enum):
    """Roast category threshold table."""
    GOURMET = "gourmet"
    COMMERCIAL = "commercial"


class SampleMode(Enum):
    """
    What is in the sample circle.

    Whole beans have rounded, glossy surfaces, so bean mode drops the
    brightest samples before averaging.
    """
    GROUND = "ground"
    BEAN = "bean"


class ModelKind(Enum):
    """Regression model families for score prediction."""
    LINEAR = "linear"      # w0 + w1*L
    POLYNOMIAL = "poly"    # w0 + w1*L + w2*a + w3*b + w4*L^2


MODEL_PARAMETERS = {
    ModelKind.LINEAR: 2,
    ModelKind.POLYNOMIAL: 5,
}

# Minimum calibration points per model kind
MIN_POINTS = {
    ModelKind.LINEAR: 2,
    ModelKind.POLYNOMIAL: 3,
}


# =============================================================================
# Validation Helpers
# =============================================================================


def _number(value: Any, name: str) -> float:
    """Coerce a JSON number to float, rejecting bools, strings and NaN."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SettingsFormatError(f"'{name}' must be a number, got {value!r}")
    try:
        value = float(value)
    except OverflowError:
        raise SettingsFormatError(f"'{name}' is out of range") from None
    if not math.isfinite(value):
        raise SettingsFormatError(f"'{name}' must be finite, got {value!r}")
    return value


def _mapping(value: Any, name: str) -> dict:
    if not isinstance(value, dict):
        raise SettingsFormatError(f"'{name}' must be an object, got {type(value).__name__}")
    return value


def _keys(data: dict, name: str, required: set[str], optional: set[str] = frozenset()) -> None:
    """Reject missing required keys and any unknown key."""
    missing = required - data.keys()
    if missing:
        raise SettingsFormatError(f"'{name}' is missing keys: {sorted(missing)}")
    unknown = data.keys() - required - optional
    if unknown:
        raise SettingsFormatError(f"'{name}' has unknown keys: {sorted(unknown)}")


def _enum(enum_cls: type[Enum], value: Any, name: str) -> Enum:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = [m.value for m in enum_cls]
        raise SettingsFormatError(
            f"'{name}' must be one of {allowed}, got {value!r}"
        ) from None


# =============================================================================
# Core Color Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class LabColor:
    """
    A color in CIE L*a*b* (D65).

    Attributes:
        L: Lightness (0 = black, 100 = white)
        a: Green-red axis
        b: Blue-yellow axis
    """
    L: float
    a: float
    b: float

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {"L": self.L, "a": self.a, "b": self.b}


@dataclass(frozen=True, slots=True)
class GainVector:
    """
    Per-channel white-balance gains.

    Each gain is the ratio of the neutral target (the grand mean of the
    reference patch) to the observed channel mean. Under neutral light all
    three are close to 1.0.
    """
    r: float = 1.0
    g: float = 1.0
    b: float = 1.0

    def __post_init__(self) -> None:
        """Validate gains are non-negative."""
        for name in ("r", "g", "b"):
            value = getattr(self, name)
            if not value >= 0.0:
                raise ValueError(f"Gain '{name}' must be >= 0, got {value}")

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.r, self.g, self.b)

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {"r": self.r, "g": self.g, "b": self.b}

    @classmethod
    def from_dict(cls, data: Any) -> GainVector:
        """Deserialize and validate a ``{r, g, b}`` object."""
        data = _mapping(data, "gains")
        _keys(data, "gains", {"r", "g", "b"})
        values = {k: _number(data[k], f"gains.{k}") for k in ("r", "g", "b")}
        for k, v in values.items():
            if v < 0.0:
                raise SettingsFormatError(f"'gains.{k}' must be >= 0, got {v}")
        return cls(**values)


Matrix3 = tuple[tuple[float, float, float], ...]

IDENTITY_CCM: Matrix3 = (
    (1.0, 0.0, 0.0),
    (0.0, 1.0, 0.0),
    (0.0, 0.0, 1.0),
)


def parse_ccm(data: Any) -> Matrix3:
    """Validate a 3x3 color correction matrix given as nested lists."""
    if not isinstance(data, (list, tuple)) or len(data) != 3:
        raise SettingsFormatError("'ccm' must be a 3x3 array")
    rows = []
    for i, row in enumerate(data):
        if not isinstance(row, (list, tuple)) or len(row) != 3:
            raise SettingsFormatError("'ccm' must be a 3x3 array")
        rows.append(tuple(_number(v, f"ccm[{i}][{j}]") for j, v in enumerate(row)))
    return tuple(rows)


# =============================================================================
# Calibration and Model Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class CalibrationPoint:
    """
    A user-asserted reference score paired with the Lab color measured
    when the point was captured.

    Persisted as ``{"A": score, "L": ..., "a": ..., "b": ...}``.
    """
    reference_score: float
    L: float
    a: float
    b: float

    @property
    def lab(self) -> LabColor:
        return LabColor(self.L, self.a, self.b)

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {"A": self.reference_score, "L": self.L, "a": self.a, "b": self.b}

    @classmethod
    def from_dict(cls, data: Any, name: str = "calPoints[]") -> CalibrationPoint:
        """Deserialize and validate one calibration point."""
        data = _mapping(data, name)
        _keys(data, name, {"A", "L", "a", "b"})
        return cls(
            reference_score=_number(data["A"], f"{name}.A"),
            L=_number(data["L"], f"{name}.L"),
            a=_number(data["a"], f"{name}.a"),
            b=_number(data["b"], f"{name}.b"),
        )


@dataclass(frozen=True, slots=True)
class ScoreModel:
    """
    A fitted score-prediction model.

    Attributes:
        kind: Model family
        weights: ``(w0, w1)`` for linear, ``(w0, w1, w2, w3, w4)`` for
            polynomial
    """
    kind: ModelKind
    weights: tuple[float, ...]

    def __post_init__(self) -> None:
        """Validate the weight count matches the model family."""
        expected = MODEL_PARAMETERS[self.kind]
        if len(self.weights) != expected:
            raise ValueError(
                f"{self.kind.value} model needs {expected} weights, "
                f"got {len(self.weights)}"
            )

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {"type": self.kind.value, "w": list(self.weights)}

    @classmethod
    def from_dict(cls, data: Any) -> ScoreModel:
        """Deserialize and validate a ``{type, w}`` object."""
        data = _mapping(data, "model")
        _keys(data, "model", {"type", "w"})
        kind = _enum(ModelKind, data["type"], "model.type")
        weights = data["w"]
        if not isinstance(weights, list):
            raise SettingsFormatError("'model.w' must be an array")
        expected = MODEL_PARAMETERS[kind]
        if len(weights) != expected:
            raise SettingsFormatError(
                f"'model.w' must have {expected} weights for {kind.value}, "
                f"got {len(weights)}"
            )
        return cls(
            kind=kind,
            weights=tuple(_number(w, f"model.w[{i}]") for i, w in enumerate(weights)),
        )


# =============================================================================
# Quality Gate Profiles
# =============================================================================


@dataclass(frozen=True, slots=True)
class QualityGateProfile:
    """
    Acceptance thresholds for the measurement pre-check.

    Attributes:
        name: Preset name
        glare_max: Maximum glare percentage
        wb_deviation_max: Maximum reference-patch channel deviation (0-255 scale)
        stability_max: Maximum |EMA(L) - L|
    """
    name: str
    glare_max: float
    wb_deviation_max: float
    stability_max: float


GATE_PROFILES = {
    "strict": QualityGateProfile("strict", glare_max=2.0, wb_deviation_max=8.0, stability_max=0.8),
    "normal": QualityGateProfile("normal", glare_max=4.0, wb_deviation_max=12.0, stability_max=1.5),
    "relaxed": QualityGateProfile("relaxed", glare_max=8.0, wb_deviation_max=18.0, stability_max=3.0),
}

DEFAULT_GATE = "normal"


def get_gate_profile(name: str) -> QualityGateProfile:
    """Look up a gate preset by name."""
    try:
        return GATE_PROFILES[name]
    except KeyError:
        raise ValueError(
            f"Unknown gate profile '{name}', expected one of {sorted(GATE_PROFILES)}"
        ) from None


# =============================================================================
# Measurement Log
# =============================================================================


@dataclass(frozen=True, slots=True)
class MeasurementLogEntry:
    """
    One accepted, frame-averaged measurement.

    Values are the rounded means of the averaging run; the remaining fields
    record the context the measurement was taken in.
    """
    time: datetime
    L: float
    a: float
    b: float
    score: float
    category: str
    model: str
    scale: float
    offset: float
    glare: float
    wb_deviation: float
    readiness: float
    gate: str
    mode: str
    device: str

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "time": self.time.isoformat(),
            "L": self.L,
            "a": self.a,
            "b": self.b,
            "Agtron": self.score,
            "category": self.category,
            "model": self.model,
            "scale": self.scale,
            "offset": self.offset,
            "glare": self.glare,
            "wbDev": self.wb_deviation,
            "ready": self.readiness,
            "gate": self.gate,
            "mode": self.mode,
            "device": self.device,
        }


# =============================================================================
# Settings Blob
# =============================================================================

_BLOB_REQUIRED = {"gains", "scale", "offset"}
_BLOB_OPTIONAL = {"version", "ccm", "scheme", "gate", "mode", "model", "calPoints"}


@dataclass(frozen=True, slots=True)
class SettingsBlob:
    """
    The persisted calibration state, validated.

    ``gains``, ``scale`` and ``offset`` are required; the remaining
    top-level keys fall back to session defaults when absent. Nested
    objects are always validated in full.
    """
    gains: GainVector
    scale: float
    offset: float
    ccm: Matrix3 = IDENTITY_CCM
    scheme: CategoryScheme = CategoryScheme.GOURMET
    gate: str = DEFAULT_GATE
    mode: SampleMode = SampleMode.GROUND
    model: Optional[ScoreModel] = None
    calibration_points: tuple[CalibrationPoint, ...] = ()
    version: int = SETTINGS_VERSION

    def to_dict(self) -> dict:
        """Serialize to the persisted JSON shape."""
        return {
            "version": self.version,
            "gains": self.gains.to_dict(),
            "ccm": [list(row) for row in self.ccm],
            "scale": self.scale,
            "offset": self.offset,
            "scheme": self.scheme.value,
            "gate": self.gate,
            "mode": self.mode.value,
            "model": self.model.to_dict() if self.model is not None else None,
            "calPoints": [p.to_dict() for p in self.calibration_points],
        }

    @classmethod
    def from_dict(cls, data: Any) -> SettingsBlob:
        """
        Validate and deserialize a settings blob.

        Raises:
            SettingsFormatError: On unknown or missing keys, wrong types,
                unsupported version or malformed nested objects.
        """
        data = _mapping(data, "settings")
        _keys(data, "settings", _BLOB_REQUIRED, _BLOB_OPTIONAL)

        version = data.get("version", SETTINGS_VERSION)
        if isinstance(version, bool) or version != SETTINGS_VERSION:
            raise SettingsFormatError(
                f"Unsupported settings version {version!r}, expected {SETTINGS_VERSION}"
            )

        gate = data.get("gate", DEFAULT_GATE)
        if not isinstance(gate, str) or gate not in GATE_PROFILES:
            raise SettingsFormatError(
                f"'gate' must be one of {sorted(GATE_PROFILES)}, got {gate!r}"
            )

        points = data.get("calPoints", [])
        if not isinstance(points, list):
            raise SettingsFormatError("'calPoints' must be an array")

        model = data.get("model")
        return cls(
            gains=GainVector.from_dict(data["gains"]),
            scale=_number(data["scale"], "scale"),
            offset=_number(data["offset"], "offset"),
            ccm=parse_ccm(data["ccm"]) if "ccm" in data else IDENTITY_CCM,
            scheme=_enum(CategoryScheme, data.get("scheme", "gourmet"), "scheme"),
            gate=gate,
            mode=_enum(SampleMode, data.get("mode", "ground"), "mode"),
            model=ScoreModel.from_dict(model) if model is not None else None,
            calibration_points=tuple(
                CalibrationPoint.from_dict(p, f"calPoints[{i}]")
                for i, p in enumerate(points)
            ),
        )


# =============================================================================
# Mutable Session Context
# =============================================================================


@dataclass
class SessionState:
    """
    Everything that persists across frames for one measurement session.

    Only the pipeline mutates this object, from a single logical thread.
    """
    gains: GainVector = field(default_factory=GainVector)
    ccm: Matrix3 = IDENTITY_CCM
    scale: float = DEFAULT_SCALE
    offset: float = DEFAULT_OFFSET
    scheme: CategoryScheme = CategoryScheme.GOURMET
    gate: str = DEFAULT_GATE
    mode: SampleMode = SampleMode.GROUND
    model: Optional[ScoreModel] = None
    calibration_points: list[CalibrationPoint] = field(default_factory=list)
    log: list[MeasurementLogEntry] = field(default_factory=list)

    @property
    def gate_profile(self) -> QualityGateProfile:
        return get_gate_profile(self.gate)

    @property
    def model_label(self) -> str:
        """Short name of the active scoring rule, as recorded in the log."""
        return self.model.kind.value if self.model is not None else "formula"

    def reset(self) -> None:
        """Restore every field to its default and clear the log."""
        defaults = SessionState()
        self.gains = defaults.gains
        self.ccm = defaults.ccm
        self.scale = defaults.scale
        self.offset = defaults.offset
        self.scheme = defaults.scheme
        self.gate = defaults.gate
        self.mode = defaults.mode
        self.model = None
        self.calibration_points = []
        self.log = []

    def to_settings(self) -> SettingsBlob:
        """Snapshot the persistable part of the session."""
        return SettingsBlob(
            gains=self.gains,
            scale=self.scale,
            offset=self.offset,
            ccm=self.ccm,
            scheme=self.scheme,
            gate=self.gate,
            mode=self.mode,
            model=self.model,
            calibration_points=tuple(self.calibration_points),
        )

    def apply_settings(self, blob: SettingsBlob) -> None:
        """Replace the persistable part of the session with a validated blob."""
        self.gains = blob.gains
        self.ccm = blob.ccm
        self.scale = blob.scale
        self.offset = blob.offset
        self.scheme = blob.scheme
        self.gate = blob.gate
        self.mode = blob.mode
        self.model = blob.model
        self.calibration_points = list(blob.calibration_points)
