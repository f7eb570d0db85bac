"""
Observation layer for pluggable frame sources.

This layer abstracts where frames come from (camera, video file, stream,
still image) from the detection pipeline. Each source implements the
ObservationSource interface and returns Frame objects.
"""

from typing import Any, Dict

from .base import ObservationSource, ObservationConfig
from .image_source import ImageSource, ImageSourceConfig, decode_image
from .opencv_source import OpenCVSource, OpenCVSourceConfig


def create_source_from_config(source_cfg: Dict[str, Any], source_id: str = "video") -> ObservationSource:
    """Build the video source described by the ``source`` config section."""
    return OpenCVSource(OpenCVSourceConfig.from_source_config(source_cfg, source_id=source_id))


__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "ImageSource",
    "ImageSourceConfig",
    "decode_image",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "create_source_from_config",
]
