"""
Frame scheduler for still images and live video.

The scheduler drives detection cycles (preprocess -> detector -> NMS ->
decode -> sink) for one stream:

- detect_image() runs exactly one cycle on the caller's thread.
- start_video() starts a self-pacing loop on a worker thread. Each
  iteration pulls the current frame, runs one cycle, hands the result to
  the sink and then waits for the next display tick. Iteration k+1 never
  starts before iteration k's sink call returns, so frames captured while
  inference is running are simply skipped.
- stop() cancels the stream's token. An in-flight cycle finishes but its
  result is dropped, and no further iterations run.

Config and session are snapshotted at the start of every cycle, so
changes only ever apply to the next cycle.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Protocol, Tuple

from inference.session import Session, SessionHolder
from models.config import DetectionConfig, SchedulerConfig
from models.detection import Detection
from models.errors import InferenceFailure, InvalidFrame, ShapeMismatch
from models.frame import Frame
from observation.base import ObservationSource
from .cycle import run_cycle
from .sinks import BoxSink


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING_IMAGE = "running_image"
    RUNNING_VIDEO = "running_video"
    STOPPING = "stopping"


class CancellationToken:
    """Stop flag for a single video stream."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block up to timeout seconds; True if the token was cancelled."""
        return self._event.wait(timeout)


class FrameClock(Protocol):
    def wait_next(self, token: CancellationToken) -> bool:
        """Wait for the next paint opportunity. False if cancelled meanwhile."""
        ...


class IntervalClock(FrameClock):
    """
    Fixed-rate display clock.

    Ticks fall on a regular grid starting at the first call. wait_next()
    sleeps until the first tick strictly after now, so a slow iteration
    skips the ticks it missed instead of catching up.
    """

    def __init__(self, fps: float = 60.0):
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")
        self.interval = 1.0 / fps
        self._origin: Optional[float] = None

    def wait_next(self, token: CancellationToken) -> bool:
        now = time.monotonic()
        if self._origin is None:
            self._origin = now
        ticks = math.floor((now - self._origin) / self.interval) + 1
        delay = self._origin + ticks * self.interval - now
        return not token.wait(max(delay, 0.0))


@dataclass
class StreamStats:
    """Runtime statistics for one video stream."""
    cycles_completed: int = 0
    cycles_failed: int = 0
    results_dropped: int = 0
    sink_errors: int = 0
    ticks_skipped: int = 0
    consecutive_failures: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)


class VideoStream:
    """Handle for a running video loop."""

    def __init__(self, source: ObservationSource, token: CancellationToken):
        self.source = source
        self.token = token
        self.stats = StreamStats()
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def stop(self) -> None:
        self.token.cancel()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join the worker thread. True if it has finished."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()


class FrameScheduler:
    """
    Runs detection cycles for one image/video stream.

    Several schedulers may share a SessionHolder; each owns its own
    cancellation token, so stopping one stream never affects another.

    Example:
        sessions = SessionHolder(load_session(FilePath(det), FilePath(nms)))
        scheduler = FrameScheduler(sessions, OverlaySink())
        stream = scheduler.start_video(OpenCVSource(OpenCVSourceConfig(device_id=0)))
        ...
        scheduler.stop()
        stream.wait()
    """

    def __init__(
        self,
        sessions: SessionHolder,
        sink: BoxSink,
        config: Optional[DetectionConfig] = None,
        scheduler_config: Optional[SchedulerConfig] = None,
    ):
        config = config or DetectionConfig()
        config.validate()
        self._sessions = sessions
        self._sink = sink
        self._config = config
        self._scheduler_config = scheduler_config or SchedulerConfig()
        self._state = SchedulerState.IDLE
        self._stream: Optional[VideoStream] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._state

    @property
    def config(self) -> DetectionConfig:
        with self._lock:
            return self._config

    @property
    def stream(self) -> Optional[VideoStream]:
        with self._lock:
            return self._stream

    def update_config(self, config: Optional[DetectionConfig] = None, **changes) -> DetectionConfig:
        """
        Replace the detection config; takes effect on the next cycle.

        Either pass a full DetectionConfig or keyword overrides, e.g.
        ``update_config(topk=50)``.

        Raises:
            ValueError: If the resulting config is out of range.
        """
        with self._lock:
            new_config = replace(config or self._config, **changes)
            new_config.validate()
            self._config = new_config
        logging.info(f"Detection config updated: {new_config.to_dict()}")
        return new_config

    def _snapshot(self) -> Tuple[DetectionConfig, Optional[Session]]:
        with self._lock:
            config = self._config
        return config, self._sessions.current()

    def detect_image(self, frame: Frame) -> List[Detection]:
        """
        Run one detection cycle on a still frame and deliver it to the sink.

        Raises:
            RuntimeError: If no session is loaded or the scheduler is busy.
            InvalidFrame, ShapeMismatch, InferenceFailure: From the cycle.
        """
        with self._lock:
            if self._state != SchedulerState.IDLE:
                raise RuntimeError(f"Scheduler is busy ({self._state.value})")
            session = self._sessions.current()
            if session is None:
                raise RuntimeError("No session loaded")
            config = self._config
            self._state = SchedulerState.RUNNING_IMAGE

        try:
            detections = run_cycle(frame, session, config)
            self._sink.render(frame, detections)
            logging.info(f"Image {frame.source or ''} processed: {len(detections)} detections")
            return detections
        finally:
            with self._lock:
                self._state = SchedulerState.IDLE

    def start_video(self, source: ObservationSource, clock: Optional[FrameClock] = None) -> VideoStream:
        """
        Open a video source and start the detection loop on a worker thread.

        Raises:
            RuntimeError: If no session is loaded, the scheduler is busy or
                the source cannot be opened.
        """
        with self._lock:
            if self._state != SchedulerState.IDLE:
                raise RuntimeError(f"Scheduler is busy ({self._state.value})")
            if self._sessions.current() is None:
                raise RuntimeError("No session loaded")
            stream = VideoStream(source, CancellationToken())
            self._stream = stream
            self._state = SchedulerState.RUNNING_VIDEO

        try:
            source.open()
        except Exception:
            self._finish(stream)
            raise

        clock = clock or IntervalClock(self._scheduler_config.paint_fps)
        thread = threading.Thread(
            target=self._run_video,
            args=(stream, clock),
            name=f"video-{source.source_id}",
            daemon=True,
        )
        stream._thread = thread
        thread.start()
        logging.info(f"Video stream started: source={source.source_id}")
        return stream

    def stop(self) -> None:
        """Request the running video stream to stop. No-op when idle."""
        with self._lock:
            stream = self._stream
            if self._state != SchedulerState.RUNNING_VIDEO or stream is None:
                return
            self._state = SchedulerState.STOPPING
        stream.stop()
        logging.info(f"Video stream stop requested: source={stream.source.source_id}")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current video stream (if any) to finish."""
        stream = self.stream
        return stream.wait(timeout) if stream is not None else True

    def _run_video(self, stream: VideoStream, clock: FrameClock) -> None:
        stats = stream.stats
        max_failures = self._scheduler_config.max_consecutive_failures
        try:
            while not stream.token.cancelled:
                try:
                    frame = stream.source.read()
                except InvalidFrame as e:
                    frame = None
                    stats.cycles_failed += 1
                    logging.warning(f"Bad frame from {stream.source.source_id} skipped: {e}")
                else:
                    if frame is None:
                        stats.ticks_skipped += 1

                if frame is None:
                    stats.consecutive_failures += 1
                    if stats.consecutive_failures >= max_failures:
                        logging.warning(
                            f"No usable frame for {stats.consecutive_failures} ticks, ending stream "
                            f"{stream.source.source_id}"
                        )
                        break
                else:
                    stats.consecutive_failures = 0
                    self._run_iteration(stream, frame)

                self._log_stats(stream)
                if not clock.wait_next(stream.token):
                    break
        except ShapeMismatch as e:
            stream.error = e
            logging.error(f"Video stream {stream.source.source_id} aborted: {e}")
        except Exception as e:
            stream.error = e
            logging.error(f"Video stream {stream.source.source_id} error: {e}")
        finally:
            self._finish(stream)
            logging.info(
                f"Video stream stopped: source={stream.source.source_id}, "
                f"completed={stats.cycles_completed}, failed={stats.cycles_failed}, "
                f"dropped={stats.results_dropped}, sink_errors={stats.sink_errors}"
            )

    def _run_iteration(self, stream: VideoStream, frame: Frame) -> None:
        stats = stream.stats
        config, session = self._snapshot()
        if session is None:
            stats.ticks_skipped += 1
            return

        try:
            detections = run_cycle(frame, session, config)
        except (InvalidFrame, InferenceFailure) as e:
            stats.cycles_failed += 1
            logging.warning(f"Frame {frame.frame_index} skipped: {e}")
            return

        if stream.token.cancelled:
            stats.results_dropped += 1
            return

        try:
            self._sink.render(frame, detections)
        except Exception as e:
            stats.sink_errors += 1
            logging.warning(f"Sink error: {e}")
            return
        stats.cycles_completed += 1

    def _log_stats(self, stream: VideoStream) -> None:
        stats = stream.stats
        now = time.time()
        if now - stats.last_stats_log_time < self._scheduler_config.stats_log_interval:
            return
        elapsed = max(now - stats.start_time, 1e-6)
        logging.info(
            f"Stream stats: source={stream.source.source_id}, "
            f"completed={stats.cycles_completed}, failed={stats.cycles_failed}, "
            f"skipped={stats.ticks_skipped}, fps={stats.cycles_completed / elapsed:.1f}"
        )
        stats.last_stats_log_time = now

    def _finish(self, stream: VideoStream) -> None:
        try:
            stream.source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")
        with self._lock:
            if self._stream is stream:
                self._stream = None
                self._state = SchedulerState.IDLE
