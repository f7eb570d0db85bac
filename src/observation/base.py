"""
ObservationSource interface for pluggable frame sources.

This defines the contract every frame source implements, so the scheduler
can work with any input:
- USB/CSI cameras
- RTSP/IP cameras
- Video files
- Still images (files or in-memory bytes)

Sources are pull-based: the scheduler asks for the current frame on each
tick instead of receiving a queue of every captured frame.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional

from models.frame import Frame


@dataclass
class ObservationConfig:
    """
    Base configuration for observation sources.

    Attributes:
        source_id: Unique identifier for this source (e.g., "webcam", "upload").
        resolution: Target resolution as (width, height). None = use source default.
        fps: Target frames per second. None = use source default.
    """
    source_id: str = "default"
    resolution: Optional[tuple[int, int]] = None
    fps: Optional[int] = None


class ObservationSource(ABC):
    """
    Abstract base class for frame sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() to initialize the source
        3. Call read() whenever a frame is needed
        4. Call close() to release resources

    Can also be used as a context manager:
        with OpenCVSource(config) as source:
            for frame in source:
                process(frame)
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        """Unique identifier for this source."""
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        """Whether the source is currently open and ready to read."""
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames read since open."""
        return self._frame_index

    @property
    def fps(self) -> Optional[int]:
        return self._config.fps

    @abstractmethod
    def open(self) -> None:
        """
        Open/initialize the source.

        Raises:
            RuntimeError: If the source cannot be opened.
        """

    @abstractmethod
    def read(self) -> Optional[Frame]:
        """
        Return the current frame.

        Returns None if no frame is available right now (end of video,
        camera error, paused stream).
        """

    @abstractmethod
    def close(self) -> None:
        """Release any resources held by the source. Safe to call multiple times."""

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[Frame]:
        """Yield frames until the source is exhausted."""
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")

        while True:
            frame = self.read()
            if frame is None:
                break
            yield frame
