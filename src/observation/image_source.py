"""
Still image source.

Decodes a single image from a file path or from in-memory bytes (e.g. an
upload) into a Frame.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from models.errors import InvalidFrame
from models.frame import Frame, FrameOrigin
from .base import ObservationSource, ObservationConfig


def decode_image(image_bytes: bytes, name: str = "unknown") -> Frame:
    """
    Decode encoded image bytes (JPEG, PNG, BMP, ...) into a BGR still frame.

    Raises:
        InvalidFrame: If the bytes are empty or cannot be decoded.
    """
    if not image_bytes:
        raise InvalidFrame("Empty image data provided", name)

    buffer = np.frombuffer(image_bytes, dtype=np.uint8)
    pixels = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if pixels is None or pixels.size == 0:
        raise InvalidFrame(f"Failed to decode image '{name}'", name)

    return Frame.from_numpy(pixels, channel_order="BGR", origin=FrameOrigin.IMAGE, source=name)


@dataclass
class ImageSourceConfig(ObservationConfig):
    """
    Attributes:
        path: Image file to read. Ignored when data is given.
        data: Encoded image bytes.
    """
    path: Optional[str] = None
    data: Optional[bytes] = None


class ImageSource(ObservationSource):
    """
    Source yielding exactly one still frame.

    read() returns the image once and None afterwards, so iterating the
    source behaves like a one-frame video.
    """

    def __init__(self, config: ImageSourceConfig):
        super().__init__(config)
        self._image_config = config
        self._frame: Optional[Frame] = None

    @property
    def frame(self) -> Optional[Frame]:
        return self._frame

    def open(self) -> None:
        if self._is_open:
            return

        cfg = self._image_config
        if cfg.data is not None:
            data = cfg.data
        elif cfg.path:
            if not os.path.exists(cfg.path):
                raise RuntimeError(f"Image file not found: {cfg.path}")
            with open(cfg.path, "rb") as f:
                data = f.read()
        else:
            raise RuntimeError("ImageSource needs either a path or data")

        self._frame = decode_image(data, name=self.source_id)
        self._is_open = True
        self._frame_index = 0
        logging.info(
            f"ImageSource opened: source_id={self.source_id}, "
            f"size={self._frame.width}x{self._frame.height}"
        )

    def read(self) -> Optional[Frame]:
        if not self._is_open or self._frame is None or self._frame_index > 0:
            return None
        self._frame_index += 1
        return self._frame

    def close(self) -> None:
        self._frame = None
        self._is_open = False
