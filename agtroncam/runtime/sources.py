# Copyright (c) 2026 AgtronCam
# SPDX-License-Identifier: MIT

"""
Frame sources.

ArrayFrameSource serves fixed frames from memory (still images, tests).
OpenCVFrameSource reads from a webcam and requires OpenCV
(pip install agtroncam[camera]).
"""

from __future__ import annotations

import logging
from typing import Iterable

import numpy as np
from numpy.typing import NDArray

from agtroncam.errors import CaptureUnavailableError
from agtroncam.runtime.interfaces import Frame

logger = logging.getLogger(__name__)


class ArrayFrameSource:
    """
    Frame source backed by in-memory arrays.

    With several frames, each call to ``get_current_frame`` advances to the
    next one and the last frame repeats once the sequence is exhausted.
    """

    def __init__(self, frames: NDArray[np.uint8] | Iterable[NDArray[np.uint8]]) -> None:
        if isinstance(frames, np.ndarray) and frames.ndim == 3:
            frames = [frames]
        self._frames = [Frame.from_array(f) for f in frames]
        if not self._frames:
            raise ValueError("ArrayFrameSource needs at least one frame")
        self._index = 0
        self.is_open = False

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    def get_current_frame(self) -> Frame:
        if not self.is_open:
            raise CaptureUnavailableError("Capture session is not started")
        frame = self._frames[self._index]
        if self._index < len(self._frames) - 1:
            self._index += 1
        return frame


class OpenCVFrameSource:
    """
    Webcam frame source using OpenCV's VideoCapture.

    Frames are converted from OpenCV's BGR order to RGB.
    """

    def __init__(self, device: int = 0, width: int = 1280, height: int = 720) -> None:
        self.device = device
        self.width = width
        self.height = height
        self._cap = None

    def open(self) -> None:
        if self._cap is not None:
            return
        try:
            import cv2
        except ImportError as e:
            raise CaptureUnavailableError(
                "OpenCV is required for camera capture. "
                "Install with: pip install agtroncam[camera]"
            ) from e

        cap = cv2.VideoCapture(self.device)
        if not cap.isOpened():
            cap.release()
            raise CaptureUnavailableError(f"Could not open camera index {self.device}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._cap = cap
        logger.info("Opened camera %d", self.device)

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Released camera %d", self.device)

    def get_current_frame(self) -> Frame:
        if self._cap is None:
            raise CaptureUnavailableError("Capture session is not started")
        import cv2

        ok, bgr = self._cap.read()
        if not ok or bgr is None:
            # Camera still warming up: report an empty frame ("no data")
            return Frame(pixels=np.empty((0, 0, 3), dtype=np.uint8), width=0, height=0)
        return Frame.from_array(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))
