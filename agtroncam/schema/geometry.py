# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""Rectangles shared by the display layout and the frame sampler."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Rect:
    """
    Axis-aligned rectangle.

    In display space the values may be fractional; in buffer space they
    are whole pixels.
    """
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}
