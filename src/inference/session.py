"""
Paired detector + NMS session.

A Session is the only holder of the two engines, so a detector from one
model pair can never be run against the NMS network of another. Sessions
are read-only once built; a model swap replaces the whole Session through
SessionHolder.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Dict, Iterable, Optional, Sequence

import numpy as np

from models.config import DetectionConfig, InputShape
from models.errors import DetectionError, InferenceFailure, ModelLoadError, ShapeMismatch
from .engine import InferenceEngine, ModelSource, OnnxEngine


DETECTOR_INPUT = "images"
DETECTOR_OUTPUT = "output0"
NMS_INPUTS = ("detection", "config")
NMS_OUTPUT = "selected"


class Session:
    """
    Detector and NMS engines bound to a fixed input shape.

    Calls to infer() are serialised per session, so two schedulers sharing
    a session never run it concurrently.
    """

    def __init__(self, detector: InferenceEngine, nms: InferenceEngine, input_shape: InputShape = InputShape()):
        self._detector = detector
        self._nms = nms
        self._input_shape = input_shape
        self._lock = threading.Lock()

    @property
    def input_shape(self) -> InputShape:
        return self._input_shape

    @property
    def name(self) -> str:
        return f"{getattr(self._detector, 'name', 'detector')}+{getattr(self._nms, 'name', 'nms')}"

    def infer(self, images: np.ndarray, config: DetectionConfig) -> np.ndarray:
        """
        Run the detector and NMS networks back to back.

        Args:
            images: Preprocessed input of shape input_shape.
            config: Config snapshot for this cycle.

        Returns:
            The NMS ``selected`` tensor, shape (1, N, 4 + num_classes).

        Raises:
            ShapeMismatch: If images does not match the bound input shape.
            InferenceFailure: If either network fails.
        """
        expected = self._input_shape.as_tuple()
        if tuple(images.shape) != expected:
            raise ShapeMismatch(DETECTOR_INPUT, expected, images.shape, self.name)

        with self._lock:
            raw = self._run(self._detector, {DETECTOR_INPUT: images}, DETECTOR_OUTPUT)
            return self._run(self._nms, {NMS_INPUTS[0]: raw, NMS_INPUTS[1]: config.as_tensor()}, NMS_OUTPUT)

    def warmup(self) -> None:
        """Run the detector once on a zero tensor so the first real frame is not slow."""
        started = time.time()
        zeros = np.zeros(self._input_shape.as_tuple(), dtype=np.float32)
        with self._lock:
            self._run(self._detector, {DETECTOR_INPUT: zeros}, DETECTOR_OUTPUT)
        logging.info(f"Session {self.name} warmed up in {time.time() - started:.2f}s")

    @staticmethod
    def _run(engine: InferenceEngine, inputs: Dict[str, np.ndarray], output: str) -> np.ndarray:
        name = getattr(engine, "name", None)
        try:
            outputs = engine.run(inputs)
        except DetectionError:
            raise
        except Exception as e:
            raise InferenceFailure(f"Inference failed in '{name}': {e}", name) from e
        if output not in outputs:
            raise InferenceFailure(f"Model '{name}' did not return '{output}'", name)
        return outputs[output]


def _check_signature(engine: OnnxEngine, inputs: Iterable[str], output: str) -> None:
    declared = engine.input_shapes
    missing = [n for n in inputs if n not in declared]
    if missing:
        raise ModelLoadError(f"Model '{engine.name}' is missing inputs {missing}", engine.name)
    if output not in engine.output_names:
        raise ModelLoadError(f"Model '{engine.name}' is missing output '{output}'", engine.name)


def _check_input_shape(engine: OnnxEngine, input_shape: InputShape) -> None:
    declared = engine.input_shapes[DETECTOR_INPUT]
    expected = input_shape.as_tuple()
    if len(declared) != len(expected):
        raise ShapeMismatch(DETECTOR_INPUT, expected, declared, engine.name)
    for want, got in zip(expected, declared):
        # Dynamic axes are declared as names or None.
        if isinstance(got, int) and got != want:
            raise ShapeMismatch(DETECTOR_INPUT, expected, declared, engine.name)


def load_session(
    detector_source: ModelSource,
    nms_source: ModelSource,
    input_shape: InputShape = InputShape(),
    providers: Optional[Sequence[str]] = None,
    warmup: bool = True,
) -> Session:
    """
    Load a detector/NMS pair into a Session.

    Raises:
        ModelLoadError: If either model fails to parse or lacks the expected tensors.
        ShapeMismatch: If the detector's static input shape disagrees with input_shape.
    """
    detector = OnnxEngine.load(detector_source, providers)
    nms = OnnxEngine.load(nms_source, providers)

    _check_signature(detector, [DETECTOR_INPUT], DETECTOR_OUTPUT)
    _check_signature(nms, NMS_INPUTS, NMS_OUTPUT)
    _check_input_shape(detector, input_shape)

    session = Session(detector, nms, input_shape)
    if warmup:
        session.warmup()
    logging.info(f"Session ready: {session.name}, input_shape={input_shape.as_tuple()}")
    return session


def load_session_async(
    detector_source: ModelSource,
    nms_source: ModelSource,
    input_shape: InputShape = InputShape(),
    providers: Optional[Sequence[str]] = None,
    warmup: bool = True,
    executor: Optional[Executor] = None,
) -> "Future[Session]":
    """
    Load a session in the background.

    The returned future resolves to a Session or raises ModelLoadError /
    ShapeMismatch from result().
    """
    if executor is not None:
        return executor.submit(load_session, detector_source, nms_source, input_shape, providers, warmup)

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="session-loader")
    try:
        return pool.submit(load_session, detector_source, nms_source, input_shape, providers, warmup)
    finally:
        pool.shutdown(wait=False)


class SessionHolder:
    """Holds the current Session; swaps are visible as a unit."""

    def __init__(self, session: Optional[Session] = None):
        self._session = session
        self._lock = threading.Lock()

    def current(self) -> Optional[Session]:
        with self._lock:
            return self._session

    def swap(self, session: Optional[Session]) -> Optional[Session]:
        """Install a new session and return the previous one."""
        with self._lock:
            previous, self._session = self._session, session
        if session is not None:
            logging.info(f"Session swapped in: {session.name}")
        return previous
