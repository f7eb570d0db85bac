"""
Frame model for captured still images and video frames.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np


class FrameOrigin(str, Enum):
    """Where a frame came from."""
    IMAGE = "image"
    VIDEO = "video"


# Number of channels expected for each supported channel order.
CHANNEL_COUNTS = {
    "RGBA": 4,
    "BGRA": 4,
    "RGB": 3,
    "BGR": 3,
    "GRAY": 1,
}


@dataclass(frozen=True)
class Frame:
    """
    A captured pixel buffer.

    Attributes:
        pixels: Raw pixel data as a uint8 numpy array, shape (H, W) or (H, W, C).
        width: Frame width in pixels.
        height: Frame height in pixels.
        channel_order: Channel layout of ``pixels`` (RGBA, BGRA, RGB, BGR or GRAY).
        origin: Still image or video frame.
        timestamp: Unix timestamp when the frame was captured.
        frame_index: Sequential frame number since the source was opened.
        source: Identifier for the source that produced the frame.
    """
    pixels: np.ndarray
    width: int
    height: int
    channel_order: str = "BGR"
    origin: FrameOrigin = FrameOrigin.VIDEO
    timestamp: float = 0.0
    frame_index: int = 0
    source: Optional[str] = None

    @classmethod
    def from_numpy(
        cls,
        pixels: np.ndarray,
        channel_order: str = "BGR",
        origin: FrameOrigin = FrameOrigin.VIDEO,
        timestamp: Optional[float] = None,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "Frame":
        """Create a Frame from a numpy array, taking width/height from its shape."""
        h, w = pixels.shape[:2]
        return cls(
            pixels=pixels,
            width=w,
            height=h,
            channel_order=channel_order,
            origin=origin,
            timestamp=time.time() if timestamp is None else timestamp,
            frame_index=frame_index,
            source=source,
        )

    @property
    def channels(self) -> int:
        """Number of channels in the pixel buffer."""
        return 1 if self.pixels.ndim == 2 else self.pixels.shape[2]

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    @property
    def is_square(self) -> bool:
        return self.width == self.height
