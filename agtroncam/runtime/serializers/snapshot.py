# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""PNG snapshot export of a pixel region."""

from __future__ import annotations

import io

import numpy as np
from numpy.typing import NDArray


def export_image(pixels: NDArray[np.uint8]) -> bytes:
    """Encode an (H, W, 3) or (H, W, 4) uint8 region as PNG bytes.

    Requires Pillow.
    """
    try:
        from PIL import Image
    except ImportError as e:
        raise ImportError(
            "Pillow is required for snapshot export. "
            "Install with: pip install Pillow"
        ) from e

    pixels = np.ascontiguousarray(pixels[..., :3], dtype=np.uint8)
    if pixels.ndim != 3 or pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise ValueError(f"Expected non-empty (H, W, 3) region, got shape {pixels.shape}")

    out = io.BytesIO()
    Image.fromarray(pixels).save(out, format="PNG")
    return out.getvalue()
