# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Region-of-interest sampling.

Maps on-screen regions into frame-buffer coordinates and extracts pixel
samples from them on a fixed stride. Two region shapes are supported:

- RECT: every grid point inside the rectangle
- CIRCLE: only grid points inside the circle inscribed in the rectangle
  (centre at the rectangle's middle, radius half the smaller side)

Frame buffers are (H, W, 3) or (H, W, 4) uint8 arrays; alpha is ignored.
"""

from __future__ import annotations

import math
from enum import Enum

import numpy as np
from numpy.typing import NDArray

from agtroncam.schema import Rect


class RegionShape(Enum):
    """Geometric mask applied inside a sampling rectangle."""
    RECT = "rect"
    CIRCLE = "circle"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def map_screen_region_to_buffer(
    region_rect: Rect,
    display_rect: Rect,
    buffer_width: int,
    buffer_height: int,
) -> Rect:
    """
    Convert a region's display rectangle to integer buffer coordinates.

    The displayed frame may be scaled independently on each axis, so X and
    Y use their own scale factors (buffer size / display size).

    Args:
        region_rect: Region rectangle in display coordinates
        display_rect: Rectangle the frame is displayed in, same coordinates
        buffer_width: Full-resolution frame width in pixels
        buffer_height: Full-resolution frame height in pixels

    Returns:
        Rect with integer fields; x, y >= 0 and width, height >= 1
    """
    if display_rect.width <= 0 or display_rect.height <= 0:
        raise ValueError(
            f"Display rect must have positive size, got "
            f"{display_rect.width}x{display_rect.height}"
        )

    scale_x = buffer_width / display_rect.width
    scale_y = buffer_height / display_rect.height

    x = max(0, _round_half_up((region_rect.x - display_rect.x) * scale_x))
    y = max(0, _round_half_up((region_rect.y - display_rect.y) * scale_y))
    w = max(1, _round_half_up(region_rect.width * scale_x))
    h = max(1, _round_half_up(region_rect.height * scale_y))

    return Rect(x=x, y=y, width=w, height=h)


def crop(buffer: NDArray[np.uint8], rect: Rect) -> NDArray[np.uint8]:
    """
    Crop a frame buffer to a buffer-space rectangle, dropping alpha.

    Parts of the rectangle outside the buffer are clipped away.
    """
    x, y = int(rect.x), int(rect.y)
    w, h = int(rect.width), int(rect.height)
    return buffer[y:y + h, x:x + w, :3]


def sample_pixels(
    buffer: NDArray[np.uint8],
    rect: Rect,
    stride: int = 1,
    shape: RegionShape = RegionShape.RECT,
) -> NDArray[np.uint8]:
    """
    Sample RGB triples from a region on a regular grid.

    Grid points start at the region's top-left corner and step by
    ``stride`` pixels on both axes.

    Args:
        buffer: Frame buffer of shape (H, W, 3) or (H, W, 4)
        rect: Region in buffer coordinates
        stride: Grid step in pixels (>= 1)
        shape: RECT keeps every grid point; CIRCLE keeps points with
            dx² + dy² <= r² from the region centre

    Returns:
        Array of shape (N, 3) uint8. Empty (0, 3) if nothing falls inside.
    """
    if stride < 1:
        raise ValueError(f"Stride must be >= 1, got {stride}")

    region = crop(buffer, rect)
    h, w = region.shape[:2]
    if h == 0 or w == 0:
        return np.empty((0, 3), dtype=np.uint8)

    ys = np.arange(0, h, stride)
    xs = np.arange(0, w, stride)
    grid = region[ys[:, None], xs[None, :]]

    if shape is RegionShape.CIRCLE:
        cx, cy = w // 2, h // 2
        r = min(cx, cy)
        dy = (ys - cy)[:, None]
        dx = (xs - cx)[None, :]
        mask = dx * dx + dy * dy <= r * r
        return np.ascontiguousarray(grid[mask], dtype=np.uint8)

    return np.ascontiguousarray(grid.reshape(-1, 3), dtype=np.uint8)


def reject_highlights(
    samples: NDArray[np.uint8],
    fraction: float = 0.10,
) -> NDArray[np.uint8]:
    """
    Drop the brightest ``fraction`` of samples by max channel.

    Specular highlights on whole beans read as near-white and pull the
    average lightness up. At least one sample is always kept.

    Args:
        samples: Array of shape (N, 3)
        fraction: Share of samples to drop, in [0, 1)

    Returns:
        The remaining samples, ordered darkest first
    """
    if not 0.0 <= fraction < 1.0:
        raise ValueError(f"Highlight fraction must be in [0, 1), got {fraction}")
    n = len(samples)
    if n == 0:
        return samples

    brightness = samples.max(axis=1)
    order = np.argsort(brightness, kind="stable")
    drop = int(math.floor(round(n * fraction, 9)))
    keep = max(1, n - drop)
    return samples[order[:keep]]
