"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np


TOPK_RANGE = (1, 100)


@dataclass(frozen=True)
class DetectionConfig:
    """
    Runtime knobs fed to the NMS network on every detection cycle.

    Instances are immutable; a running scheduler swaps in a new one rather
    than mutating the one an in-flight cycle holds.
    """
    topk: int = 100
    iou_threshold: float = 0.45
    score_threshold: float = 0.25

    def validate(self) -> None:
        """Raise ValueError if any knob is out of range."""
        lo, hi = TOPK_RANGE
        if isinstance(self.topk, bool) or not isinstance(self.topk, int) or not (lo <= self.topk <= hi):
            raise ValueError(f"topk must be an integer in [{lo}, {hi}], got {self.topk!r}")
        for name in ("iou_threshold", "score_threshold"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not (0.0 <= value <= 1.0):
                raise ValueError(f"{name} must be a number in [0, 1], got {value!r}")

    def as_tensor(self) -> np.ndarray:
        """The [topk, iouThreshold, scoreThreshold] float32 input of the NMS network."""
        return np.array([self.topk, self.iou_threshold, self.score_threshold], dtype=np.float32)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        return cls(
            topk=d.get("topk", 100),
            iou_threshold=d.get("iou_threshold", 0.45),
            score_threshold=d.get("score_threshold", 0.25),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topk": self.topk,
            "iou_threshold": self.iou_threshold,
            "score_threshold": self.score_threshold,
        }


@dataclass(frozen=True)
class InputShape:
    """NCHW input shape agreed with the detector at load time."""
    batch: int = 1
    channels: int = 3
    height: int = 640
    width: int = 640

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.batch, self.channels, self.height, self.width)

    @property
    def numel(self) -> int:
        return self.batch * self.channels * self.height * self.width

    @classmethod
    def from_list(cls, dims: List[int]) -> "InputShape":
        if len(dims) != 4:
            raise ValueError(f"input_shape must have 4 dimensions, got {dims!r}")
        batch, channels, height, width = (int(d) for d in dims)
        return cls(batch=batch, channels=channels, height=height, width=width)


@dataclass
class ModelConfig:
    """Detector and NMS model locations."""
    detector: str = "model/yolov8n.onnx"
    nms: str = "model/nms-yolov8.onnx"
    input_shape: List[int] = field(default_factory=lambda: [1, 3, 640, 640])
    providers: List[str] = field(default_factory=lambda: ["CPUExecutionProvider"])
    warmup: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelConfig":
        return cls(
            detector=d.get("detector", "model/yolov8n.onnx"),
            nms=d.get("nms", "model/nms-yolov8.onnx"),
            input_shape=d.get("input_shape", [1, 3, 640, 640]),
            providers=d.get("providers", ["CPUExecutionProvider"]),
            warmup=d.get("warmup", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detector": self.detector,
            "nms": self.nms,
            "input_shape": self.input_shape,
            "providers": self.providers,
            "warmup": self.warmup,
        }

    @property
    def shape(self) -> InputShape:
        return InputShape.from_list(self.input_shape)


@dataclass
class SourceConfig:
    """Video source configuration."""
    device_id: Union[int, str] = 0
    fps: int = 30
    resolution: Optional[List[int]] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SourceConfig":
        return cls(
            device_id=d.get("device_id", 0),
            fps=d.get("fps", 30),
            resolution=d.get("resolution"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "device_id": self.device_id,
            "fps": self.fps,
        }
        if self.resolution is not None:
            d["resolution"] = self.resolution
        return d


@dataclass
class SchedulerConfig:
    """
    Video loop tuning.

    Attributes:
        paint_fps: Display refresh rate the video loop is paced to.
        max_consecutive_failures: Empty reads in a row before the stream ends.
        stats_log_interval: Seconds between stream stats log messages.
    """
    paint_fps: float = 60.0
    max_consecutive_failures: int = 10
    stats_log_interval: float = 60.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SchedulerConfig":
        return cls(
            paint_fps=d.get("paint_fps", 60.0),
            max_consecutive_failures=d.get("max_consecutive_failures", 10),
            stats_log_interval=d.get("stats_log_interval", 60.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paint_fps": self.paint_fps,
            "max_consecutive_failures": self.max_consecutive_failures,
            "stats_log_interval": self.stats_log_interval,
        }


@dataclass
class AppConfig:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    labels: List[str] = field(default_factory=list)
    log_path: str = "logs/detector.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AppConfig":
        """Adapter: Create AppConfig from raw dictionary (e.g., from load_config)."""
        return cls(
            model=ModelConfig.from_dict(d.get("model", {}) or {}),
            detection=DetectionConfig.from_dict(d.get("detection", {}) or {}),
            source=SourceConfig.from_dict(d.get("source", {}) or {}),
            scheduler=SchedulerConfig.from_dict(d.get("scheduler", {}) or {}),
            labels=list(d.get("labels") or []),
            log_path=d.get("log_path", "logs/detector.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "model": self.model.to_dict(),
            "detection": self.detection.to_dict(),
            "source": self.source.to_dict(),
            "scheduler": self.scheduler.to_dict(),
            "labels": list(self.labels),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
