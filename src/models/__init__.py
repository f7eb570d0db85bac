"""
Typed models for the detector application.

Frames, decoded detections, configuration and the error taxonomy shared by
every stage of the pipeline.
"""

from .frame import Frame, FrameOrigin
from .detection import Detection, BoundingBox
from .errors import (
    DetectionError,
    InvalidFrame,
    ModelLoadError,
    ShapeMismatch,
    InferenceFailure,
)
from .config import (
    AppConfig,
    DetectionConfig,
    InputShape,
    ModelConfig,
    SourceConfig,
    SchedulerConfig,
)

__all__ = [
    # Frame
    "Frame",
    "FrameOrigin",
    # Detection
    "Detection",
    "BoundingBox",
    # Errors
    "DetectionError",
    "InvalidFrame",
    "ModelLoadError",
    "ShapeMismatch",
    "InferenceFailure",
    # Config
    "AppConfig",
    "DetectionConfig",
    "InputShape",
    "ModelConfig",
    "SourceConfig",
    "SchedulerConfig",
]
