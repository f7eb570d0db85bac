"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import threading
import time

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from inference.session import Session  # noqa: E402
from models.config import InputShape  # noqa: E402
from models.frame import Frame, FrameOrigin  # noqa: E402


SMALL_SHAPE = InputShape(batch=1, channels=3, height=64, width=64)


class OverlapMonitor:
    """Counts concurrent engine calls."""

    def __init__(self):
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0

    def enter(self):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)

    def exit(self):
        with self._lock:
            self.active -= 1


class FakeDetector:
    """Detector engine returning a fixed raw tensor."""

    name = "fake-detector"

    def __init__(self, delay=0.0, monitor=None, error=None):
        self.delay = delay
        self.monitor = monitor
        self.error = error
        self.calls = []

    def run(self, inputs):
        if self.monitor:
            self.monitor.enter()
        try:
            self.calls.append({k: np.array(v) for k, v in inputs.items()})
            if self.delay:
                time.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return {"output0": np.zeros((1, 6, 8), dtype=np.float32)}
        finally:
            if self.monitor:
                self.monitor.exit()


class FakeNms:
    """NMS engine returning preset rows and recording each config tensor."""

    name = "fake-nms"

    def __init__(self, rows=None, delay=0.0, monitor=None, num_classes=3):
        if rows is None:
            rows = np.zeros((1, 0, 4 + num_classes), dtype=np.float32)
        self.rows = np.asarray(rows, dtype=np.float32)
        self.delay = delay
        self.monitor = monitor
        self.configs = []

    def run(self, inputs):
        if self.monitor:
            self.monitor.enter()
        try:
            self.configs.append(np.array(inputs["config"]))
            if self.delay:
                time.sleep(self.delay)
            return {"selected": self.rows}
        finally:
            if self.monitor:
                self.monitor.exit()


@pytest.fixture
def make_frame():
    """Factory for solid-color frames."""
    def _make(width=64, height=48, channel_order="BGR", value=0, origin=FrameOrigin.VIDEO):
        channels = {"RGBA": 4, "BGRA": 4, "RGB": 3, "BGR": 3, "GRAY": 1}[channel_order]
        shape = (height, width) if channels == 1 else (height, width, channels)
        pixels = np.full(shape, value, dtype=np.uint8)
        return Frame.from_numpy(pixels, channel_order=channel_order, origin=origin, source="test")
    return _make


@pytest.fixture
def make_session():
    """Factory for sessions built on fake engines with a small input shape."""
    def _make(detector=None, nms=None, input_shape=SMALL_SHAPE):
        return Session(detector or FakeDetector(), nms or FakeNms(), input_shape)
    return _make


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
model:
  detector: "model/yolov8n.onnx"
  nms: "model/nms-yolov8.onnx"
  input_shape: [1, 3, 640, 640]

detection:
  topk: 100
  iou_threshold: 0.45
  score_threshold: 0.25

source:
  device_id: 0
  fps: 30

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "model": {
            "detector": "model/yolov8n.onnx",
            "nms": "model/nms-yolov8.onnx",
            "input_shape": [1, 3, 640, 640],
            "providers": ["CPUExecutionProvider"],
        },
        "detection": {
            "topk": 100,
            "iou_threshold": 0.45,
            "score_threshold": 0.25,
        },
        "source": {
            "device_id": 0,
            "fps": 30,
        },
        "scheduler": {
            "paint_fps": 60.0,
            "max_consecutive_failures": 10,
        },
        "labels": ["card"],
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
