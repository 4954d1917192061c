# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Collaborator interfaces consumed by the measurement pipeline.

The pipeline never talks to a camera, a display tree or a storage backend
directly; it goes through these narrow protocols.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np
from numpy.typing import NDArray

from agtroncam.schema import Rect


@dataclass(frozen=True)
class Frame:
    """
    One captured frame.

    Attributes:
        pixels: (H, W, 3) or (H, W, 4) uint8 RGB(A) buffer
        width: Frame width in pixels (0 if no data yet)
        height: Frame height in pixels (0 if no data yet)
    """
    pixels: NDArray[np.uint8]
    width: int
    height: int

    @classmethod
    def from_array(cls, pixels: NDArray[np.uint8]) -> Frame:
        """Wrap an (H, W, C) array, taking width and height from its shape."""
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise ValueError(
                f"Expected (H, W, 3) or (H, W, 4) array, got shape {pixels.shape}"
            )
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 array, got {pixels.dtype}")
        height, width = pixels.shape[:2]
        return cls(pixels=pixels, width=width, height=height)


class FrameSource(Protocol):
    """A live capture session."""

    def open(self) -> None:
        """Start capturing. Raises CaptureUnavailableError on failure."""
        ...

    def close(self) -> None:
        """Release the capture resource. Safe to call when not open."""
        ...

    def get_current_frame(self) -> Frame:
        """Latest frame. Raises CaptureUnavailableError when not open."""
        ...


class RegionProvider(Protocol):
    """Rectangles for the sampling regions, all in display coordinates."""

    def sample_region_rect(self) -> Rect:
        ...

    def reference_region_rect(self) -> Rect:
        ...

    def display_rect(self) -> Rect:
        ...


class SettingsStore(Protocol):
    """Key-value persistence for the settings blob."""

    def load(self) -> Optional[dict]:
        """Stored blob, or None if nothing has been saved."""
        ...

    def save(self, blob: dict) -> None:
        ...

    def clear(self) -> None:
        ...
