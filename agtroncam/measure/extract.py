# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Still-image estimation API.

Runs the live pipeline once over a single image, using the default
centred layout for the sample circle and the reference box.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import numpy as np
from numpy.typing import NDArray

from agtroncam.errors import NoFrameError
from agtroncam.schema import CategoryScheme, SampleMode, SessionState, SettingsBlob
from agtroncam.measure.pipeline import MeasurementPipeline, PassResult, PipelineConfig
from agtroncam.runtime.layout import CenteredLayout
from agtroncam.runtime.sources import ArrayFrameSource


def estimate(
    image: Union[str, Path, NDArray[np.uint8]],
    *,
    calibrate_white: bool = False,
    mode: Union[SampleMode, str, None] = None,
    scheme: Union[CategoryScheme, str, None] = None,
    settings: Optional[SettingsBlob] = None,
    config: Optional[PipelineConfig] = None,
) -> PassResult:
    """
    Estimate the roast level of coffee in a still image.

    The sample circle is centred in the image; the reference box sits in
    the top-right corner.

    Args:
        image: One of:
            - Path to an image file (loaded with Pillow, converted to RGB)
            - NumPy array of shape (H, W, 3) or (H, W, 4) with uint8 sRGB
        calibrate_white: Derive white-balance gains from the reference box
            before measuring (overrides gains from ``settings``)
        mode: "ground" or "bean"; overrides ``settings``
        scheme: "gourmet" or "commercial"; overrides ``settings``
        settings: Previously saved calibration (gains, model, ...)
        config: Pipeline tunables

    Returns:
        PassResult for the image

    Raises:
        NoFrameError: The image has no usable pixels

    Example:
        >>> from agtroncam import estimate
        >>> r = estimate("beans.jpg", calibrate_white=True, mode="bean")
        >>> round(r.score, 1), r.category.name
        (61.4, 'Medium-Light')
    """
    pixels = _load_image(image)
    height, width = pixels.shape[:2]

    state = SessionState()
    if settings is not None:
        state.apply_settings(settings)
    if mode is not None:
        state.mode = SampleMode(mode)
    if scheme is not None:
        state.scheme = CategoryScheme(scheme)

    pipeline = MeasurementPipeline(
        ArrayFrameSource(pixels),
        CenteredLayout(width=width, height=height),
        config=config,
        state=state,
    )
    pipeline.start()
    try:
        if calibrate_white:
            pipeline.calibrate_white()
        result = pipeline.analyze_once()
    finally:
        pipeline.stop()

    if result is None:
        raise NoFrameError("Image has no usable pixels in the sample region")
    return result


def _load_image(image: Union[str, Path, NDArray[np.uint8]]) -> NDArray[np.uint8]:
    """Load an image file as an (H, W, 3) uint8 array or validate an array."""
    if isinstance(image, (str, Path)):
        try:
            from PIL import Image
        except ImportError as e:
            raise ImportError(
                "Pillow is required for image loading. "
                "Install with: pip install Pillow"
            ) from e

        with Image.open(image) as img:
            if img.mode != "RGB":
                img = img.convert("RGB")
            pixels = np.array(img, dtype=np.uint8)

    elif isinstance(image, np.ndarray):
        pixels = image

        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise ValueError(
                f"Expected (H, W, 3) or (H, W, 4) array, got shape {pixels.shape}"
            )

        if pixels.dtype != np.uint8:
            raise ValueError(
                f"Expected uint8 array, got {pixels.dtype}"
            )

    else:
        raise TypeError(
            f"Expected file path or numpy array, got {type(image)}"
        )

    return pixels
