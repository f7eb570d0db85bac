"""
OpenCV-based video source.

Supports:
- USB webcams (device_id as int, e.g., 0)
- RTSP/IP cameras (device_id as str URL)
- Video files (device_id as file path)
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse, urlunparse

import cv2

from models.errors import InvalidFrame
from models.frame import Frame, FrameOrigin
from .base import ObservationSource, ObservationConfig


def sanitize_url(device_id: Union[int, str]) -> str:
    """Strip credentials from stream URLs before they reach the logs."""
    if not isinstance(device_id, str) or "@" not in device_id:
        return str(device_id)
    parsed = urlparse(device_id)
    netloc = parsed.hostname or ""
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=f"***@{netloc}"))


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for OpenCV-based sources.

    Attributes:
        device_id: Camera index (int), RTSP URL (str), or file path (str).
        rtsp_transport: Transport protocol for RTSP ("tcp" or "udp").
        buffer_size: OpenCV capture buffer size (keeps live feeds current).
        max_retries: Maximum retries for capture initialization.
    """
    device_id: Union[int, str] = 0
    rtsp_transport: str = "tcp"
    buffer_size: int = 1
    max_retries: int = 3

    @classmethod
    def from_source_config(cls, source_cfg: Dict[str, Any], source_id: str = "video") -> "OpenCVSourceConfig":
        """
        Adapter: Create OpenCVSourceConfig from the ``source`` config section.

        Args:
            source_cfg: Source configuration dict (from config.yaml).
            source_id: Identifier for this source.
        """
        resolution = source_cfg.get("resolution")
        if resolution:
            resolution = tuple(resolution)

        device_id = source_cfg.get("device_id", 0)
        if isinstance(device_id, str) and device_id.isdigit():
            device_id = int(device_id)

        return cls(
            source_id=source_id,
            resolution=resolution,
            fps=source_cfg.get("fps"),
            device_id=device_id,
            rtsp_transport=source_cfg.get("rtsp_transport", "tcp"),
            buffer_size=source_cfg.get("buffer_size", 1),
            max_retries=source_cfg.get("max_retries", 3),
        )


class OpenCVSource(ObservationSource):
    """
    Video source backed by cv2.VideoCapture.

    Each read() returns the next decoded frame as a BGR Frame. With a
    buffer size of 1, live cameras hand back the most recent frame rather
    than a backlog.
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def is_rtsp(self) -> bool:
        return isinstance(self.device_id, str) and self.device_id.startswith(("rtsp://", "rtsps://"))

    @property
    def is_file(self) -> bool:
        return isinstance(self.device_id, str) and not self.is_rtsp and os.path.exists(self.device_id)

    def open(self) -> None:
        if self._is_open:
            return

        if self.is_rtsp:
            os.environ["OPENCV_FFMPEG_CAPTURE_OPTIONS"] = (
                f"rtsp_transport;{self._opencv_config.rtsp_transport}"
            )

        self._cap = self._connect()
        self._apply_capture_properties(self._cap)
        self._is_open = True
        self._frame_index = 0

        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, "
            f"device={sanitize_url(self.device_id)}, resolution={self._opencv_config.resolution}"
        )

    def _connect(self) -> cv2.VideoCapture:
        """Open the capture, backing off 1s, 2s, 4s ... (capped at 10s) between attempts."""
        attempts = max(self._opencv_config.max_retries, 1)
        device = sanitize_url(self.device_id)
        for attempt in range(attempts):
            if attempt:
                wait_time = min(2 ** (attempt - 1), 10)
                logging.warning(
                    f"Failed to open device {device}, retrying in {wait_time}s "
                    f"(attempt {attempt + 1}/{attempts})"
                )
                time.sleep(wait_time)
            cap = cv2.VideoCapture(self.device_id)
            if cap.isOpened():
                return cap
            cap.release()
        raise RuntimeError(f"Failed to open device {device} after {attempts} attempts")

    def _apply_capture_properties(self, cap: cv2.VideoCapture) -> None:
        # Only local cameras honour capture properties
        if not isinstance(self.device_id, int):
            return
        cfg = self._opencv_config
        if cfg.resolution:
            w, h = cfg.resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
        if cfg.fps:
            cap.set(cv2.CAP_PROP_FPS, cfg.fps)
        cap.set(cv2.CAP_PROP_BUFFERSIZE, cfg.buffer_size)

    def read(self) -> Optional[Frame]:
        if not self._is_open or self._cap is None:
            return None

        try:
            ret, pixels = self._cap.read()
        except cv2.error as e:
            raise InvalidFrame(f"Capture read failed: {e}", self.source_id) from e
        if not ret or pixels is None:
            if self.is_file:
                logging.info("End of video file reached")
            return None

        self._frame_index += 1
        return Frame.from_numpy(
            pixels,
            channel_order="BGR",
            origin=FrameOrigin.VIDEO,
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        if self._is_open:
            logging.info(f"OpenCVSource closed: source_id={self.source_id}")
        self._is_open = False
