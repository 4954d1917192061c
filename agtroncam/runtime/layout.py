# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Default region layout.

The sample circle sits in the centre of the displayed frame with a
radius of 28% of the smaller side. The reference box sits in the
top-right corner: 18% of the smaller side wide, 0.7 times as tall,
inset by a fixed padding.
"""

from __future__ import annotations

from dataclasses import dataclass

from agtroncam.schema import Rect


@dataclass
class CenteredLayout:
    """
    Region provider for a frame displayed at ``(x, y, width, height)``.

    Call ``resize`` when the display geometry changes.
    """
    width: float
    height: float
    x: float = 0.0
    y: float = 0.0
    circle_ratio: float = 0.28
    reference_ratio: float = 0.18
    reference_aspect: float = 0.7
    padding: float = 10.0

    def resize(self, width: float, height: float, x: float = 0.0, y: float = 0.0) -> None:
        self.width, self.height, self.x, self.y = width, height, x, y

    def display_rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def sample_region_rect(self) -> Rect:
        radius = min(self.width, self.height) * self.circle_ratio
        cx = self.x + self.width / 2.0
        cy = self.y + self.height / 2.0
        return Rect(cx - radius, cy - radius, radius * 2.0, radius * 2.0)

    def reference_region_rect(self) -> Rect:
        w = min(self.width, self.height) * self.reference_ratio
        h = w * self.reference_aspect
        return Rect(
            self.x + self.width - w - self.padding,
            self.y + self.padding,
            w,
            h,
        )
