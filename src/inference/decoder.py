"""
Decode NMS output rows into detections in original-frame pixel space.
"""

from __future__ import annotations

from typing import List

import numpy as np

from models.detection import Detection
from models.errors import InferenceFailure
from preprocessing.letterbox import LetterboxTransform


def decode(selected: np.ndarray, transform: LetterboxTransform) -> List[Detection]:
    """
    Convert the NMS ``selected`` tensor into detections.

    Each row is [cx, cy, w, h, score_0 ... score_{C-1}] in padded model
    space. The label is the arg-max score (lowest index wins a tie) and the
    box is returned as top-left x/y plus width/height in frame pixels.
    Output order follows the NMS output order.

    Args:
        selected: Array of shape (1, N, 4 + C) or (N, 4 + C). N may be 0.
        transform: Letterbox ratios of the frame the rows belong to.
    """
    rows = np.asarray(selected, dtype=np.float32)
    if rows.ndim == 3:
        rows = rows.reshape(-1, rows.shape[-1])
    if rows.ndim != 2:
        raise InferenceFailure(f"Unexpected NMS output shape {np.shape(selected)}")
    if rows.shape[0] == 0:
        return []
    if rows.shape[1] <= 4:
        raise InferenceFailure(f"NMS output rows have no class scores: shape {rows.shape}")

    scores = rows[:, 4:]
    labels = np.argmax(scores, axis=1)
    probabilities = scores[np.arange(len(rows)), labels]

    cx, cy, w, h = rows[:, 0], rows[:, 1], rows[:, 2], rows[:, 3]
    xs = (cx - 0.5 * w) * transform.x_ratio
    ys = (cy - 0.5 * h) * transform.y_ratio
    widths = w * transform.x_ratio
    heights = h * transform.y_ratio

    return [
        Detection.from_xywh(
            label=int(labels[i]),
            probability=float(probabilities[i]),
            x=float(xs[i]),
            y=float(ys[i]),
            w=float(widths[i]),
            h=float(heights[i]),
        )
        for i in range(len(rows))
    ]
