"""
One detection cycle: preprocess -> detector -> NMS -> decode.
"""

from __future__ import annotations

from typing import List

from inference.decoder import decode
from inference.session import Session
from models.config import DetectionConfig
from models.detection import Detection
from models.frame import Frame
from preprocessing.letterbox import preprocess


def run_cycle(frame: Frame, session: Session, config: DetectionConfig) -> List[Detection]:
    """
    Run a single frame through the whole pipeline.

    The session and config passed in are the snapshot for this cycle; the
    caller decides what happens to the detections.

    Raises:
        InvalidFrame: If the frame cannot be preprocessed.
        ShapeMismatch: If the preprocessed tensor disagrees with the session.
        InferenceFailure: If either network fails.
    """
    shape = session.input_shape
    images, transform = preprocess(frame, shape.width, shape.height)
    selected = session.infer(images, config)
    return decode(selected, transform)
