"""
Box sinks: consumers of the detections produced for each frame.

The pipeline never draws on its own; it hands (frame, detections) to a
sink. OverlaySink renders boxes with OpenCV for the CLI, CallbackSink
forwards detections to arbitrary code (a UI, a test).
"""

from __future__ import annotations

import threading
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import cv2
import numpy as np

from models.detection import Detection
from models.frame import Frame


# Ultralytics-style palette, BGR
_PALETTE_HEX = (
    "FF3838", "FF9D97", "FF701F", "FFB21D", "CFD231", "48F90A", "92CC17",
    "3DDB86", "1A9334", "00D4BB", "2C99A8", "00C2FF", "344593", "6473FF",
    "0018EC", "8438FF", "520085", "CB38FF", "FF95C8", "FF37C7",
)
PALETTE: Tuple[Tuple[int, int, int], ...] = tuple(
    (int(h[4:6], 16), int(h[2:4], 16), int(h[0:2], 16)) for h in _PALETTE_HEX
)

_TO_BGR = {
    "RGBA": cv2.COLOR_RGBA2BGR,
    "BGRA": cv2.COLOR_BGRA2BGR,
    "RGB": cv2.COLOR_RGB2BGR,
    "GRAY": cv2.COLOR_GRAY2BGR,
}


class BoxSink(Protocol):
    def render(self, frame: Frame, detections: List[Detection]) -> None:
        ...


class CallbackSink(BoxSink):
    """Forward every frame's detections to a callable."""

    def __init__(self, callback: Callable[[Frame, List[Detection]], None]):
        self._callback = callback

    def render(self, frame: Frame, detections: List[Detection]) -> None:
        self._callback(frame, detections)


def to_bgr(frame: Frame) -> np.ndarray:
    """Return a BGR copy of the frame's pixels, suitable for drawing."""
    if frame.channel_order == "BGR":
        return frame.pixels.copy()
    return cv2.cvtColor(frame.pixels, _TO_BGR[frame.channel_order])


def draw_detections(
    image: np.ndarray,
    detections: Sequence[Detection],
    labels: Optional[Sequence[str]] = None,
) -> np.ndarray:
    """Draw boxes and captions onto a BGR image in place and return it."""
    font = cv2.FONT_HERSHEY_SIMPLEX
    for det in detections:
        color = PALETTE[det.label % len(PALETTE)]
        x1, y1, x2, y2 = det.bbox.as_int_tuple()
        name = labels[det.label] if labels and det.label < len(labels) else str(det.label)
        caption = f"{name} {det.probability * 100:.1f}%"

        cv2.rectangle(image, (x1, y1), (x2, y2), color, 2)

        # Caption with background, kept inside the image
        (tw, th), _ = cv2.getTextSize(caption, font, 0.5, 1)
        top = y1 - th - 6 if y1 - th - 6 >= 0 else y1
        cv2.rectangle(image, (x1, top), (x1 + tw + 4, top + th + 6), color, -1)
        cv2.putText(image, caption, (x1 + 2, top + th + 2), font, 0.5, (255, 255, 255), 1)
    return image


class OverlaySink(BoxSink):
    """
    Draw detections onto a copy of their frame.

    The annotated image is kept as ``latest()`` and passed to ``on_image``
    when given. Display is left to the caller's thread.
    """

    def __init__(
        self,
        labels: Optional[Sequence[str]] = None,
        on_image: Optional[Callable[[np.ndarray], None]] = None,
    ):
        self._labels = list(labels) if labels else None
        self._on_image = on_image
        self._latest: Optional[np.ndarray] = None
        self._lock = threading.Lock()

    def render(self, frame: Frame, detections: List[Detection]) -> None:
        image = draw_detections(to_bgr(frame), detections, self._labels)
        with self._lock:
            self._latest = image
        if self._on_image is not None:
            self._on_image(image)

    def latest(self) -> Optional[np.ndarray]:
        """Most recent annotated image, or None before the first frame."""
        with self._lock:
            return None if self._latest is None else self._latest.copy()
