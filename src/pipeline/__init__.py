"""
Pipeline module for the detector.

The pipeline orchestrates the full processing flow:
- Frame acquisition from observation sources
- Letterbox preprocessing
- Detector + NMS inference through a paired Session
- Decoding into frame-space detections
- Delivery to a box sink, once per frame
"""

from .cycle import run_cycle
from .scheduler import (
    CancellationToken,
    FrameClock,
    FrameScheduler,
    IntervalClock,
    SchedulerState,
    StreamStats,
    VideoStream,
)
from .sinks import BoxSink, CallbackSink, OverlaySink, draw_detections

__all__ = [
    "run_cycle",
    "CancellationToken",
    "FrameClock",
    "FrameScheduler",
    "IntervalClock",
    "SchedulerState",
    "StreamStats",
    "VideoStream",
    "BoxSink",
    "CallbackSink",
    "OverlaySink",
    "draw_detections",
]
