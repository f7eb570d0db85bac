"""
Detection models for decoded detector output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in original-frame pixel coordinates.

    Attributes:
        x: Left edge x coordinate.
        y: Top edge y coordinate.
        width: Box width.
        height: Box height.
    """
    x: float
    y: float
    width: float
    height: float

    @property
    def x1(self) -> float:
        return self.x

    @property
    def y1(self) -> float:
        return self.y

    @property
    def x2(self) -> float:
        return self.x + self.width

    @property
    def y2(self) -> float:
        return self.y + self.height

    def as_xywh(self) -> Tuple[float, float, float, float]:
        """Return as (x, y, width, height) tuple."""
        return (self.x, self.y, self.width, self.height)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """Return as integer (x1, y1, x2, y2) tuple, for drawing."""
        return (int(self.x1), int(self.y1), int(self.x2), int(self.y2))


@dataclass(frozen=True)
class Detection:
    """
    A single decoded detection.

    Attributes:
        label: Class index (arg-max of the class scores).
        probability: Score of that class, in [0, 1].
        bbox: Bounding box in original-frame pixel coordinates.
    """
    label: int
    probability: float
    bbox: BoundingBox

    @property
    def bounding(self) -> List[float]:
        """Box as [x, y, w, h] with (x, y) the top-left corner."""
        return list(self.bbox.as_xywh())

    @classmethod
    def from_xywh(cls, label: int, probability: float, x: float, y: float, w: float, h: float) -> "Detection":
        return cls(
            label=label,
            probability=probability,
            bbox=BoundingBox(x=x, y=y, width=w, height=h),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "probability": self.probability,
            "bounding": self.bounding,
        }
