"""
Letterbox preprocessing for the detector input.

The frame is converted to RGB, padded with black on the bottom/right to a
square of side max(width, height), resized to the model input size and
scaled to [0, 1] in planar NCHW layout. The returned LetterboxTransform
holds the ratios needed to map model-space boxes back to the frame.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

from models.errors import InvalidFrame
from models.frame import CHANNEL_COUNTS, Frame


# Channel order the detector was trained on.
MODEL_CHANNEL_ORDER = "RGB"

_TO_RGB = {
    "RGBA": cv2.COLOR_RGBA2RGB,
    "BGRA": cv2.COLOR_BGRA2RGB,
    "BGR": cv2.COLOR_BGR2RGB,
    "GRAY": cv2.COLOR_GRAY2RGB,
}


@dataclass(frozen=True)
class LetterboxTransform:
    """
    Ratio between the padded square canvas and the original frame.

    Both ratios are >= 1.0 and the one along the longer side is exactly 1.0.
    """
    x_ratio: float
    y_ratio: float
    x_pad: int = 0
    y_pad: int = 0

    @classmethod
    def from_size(cls, width: int, height: int) -> "LetterboxTransform":
        max_side = max(width, height)
        return cls(
            x_ratio=max_side / width,
            y_ratio=max_side / height,
            x_pad=max_side - width,
            y_pad=max_side - height,
        )


def _validate(frame: Frame) -> None:
    source = frame.source
    if frame.width <= 0 or frame.height <= 0:
        raise InvalidFrame(f"Frame has empty size {frame.width}x{frame.height}", source)
    pixels = frame.pixels
    if not isinstance(pixels, np.ndarray) or pixels.size == 0:
        raise InvalidFrame("Frame has no pixel data", source)
    if pixels.ndim not in (2, 3):
        raise InvalidFrame(f"Unsupported pixel array shape {pixels.shape}", source)
    if pixels.shape[:2] != (frame.height, frame.width):
        raise InvalidFrame(
            f"Pixel array shape {pixels.shape[:2]} does not match frame size "
            f"{frame.height}x{frame.width}",
            source,
        )
    if pixels.dtype != np.uint8:
        raise InvalidFrame(f"Expected uint8 pixels, got {pixels.dtype}", source)
    expected = CHANNEL_COUNTS.get(frame.channel_order)
    if expected is None:
        raise InvalidFrame(f"Unknown channel order {frame.channel_order!r}", source)
    if frame.channels != expected:
        raise InvalidFrame(
            f"{frame.channel_order} frame has {frame.channels} channels, expected {expected}",
            source,
        )


def to_rgb(frame: Frame) -> np.ndarray:
    """Return the frame's pixels as a 3-channel RGB array (alpha dropped)."""
    if frame.channel_order == MODEL_CHANNEL_ORDER:
        return frame.pixels
    return cv2.cvtColor(frame.pixels, _TO_RGB[frame.channel_order])


def preprocess(frame: Frame, model_width: int, model_height: int) -> Tuple[np.ndarray, LetterboxTransform]:
    """
    Convert a frame into the detector input tensor.

    Args:
        frame: Source frame (any supported channel order).
        model_width: Model input width.
        model_height: Model input height.

    Returns:
        Tuple of (tensor, transform) where tensor is float32 with shape
        (1, 3, model_height, model_width) and values in [0, 1].

    Raises:
        InvalidFrame: If the frame is empty or its buffer cannot be converted.
    """
    _validate(frame)
    transform = LetterboxTransform.from_size(frame.width, frame.height)

    try:
        rgb = to_rgb(frame)
        padded = cv2.copyMakeBorder(
            rgb, 0, transform.y_pad, 0, transform.x_pad,
            cv2.BORDER_CONSTANT, value=(0, 0, 0),
        )
        blob = cv2.dnn.blobFromImage(
            padded,
            scalefactor=1 / 255.0,
            size=(model_width, model_height),
            mean=(0, 0, 0),
            swapRB=False,
            crop=False,
        )
    except cv2.error as e:
        raise InvalidFrame(f"Failed to convert frame: {e}", frame.source) from e

    return blob.astype(np.float32, copy=False), transform
