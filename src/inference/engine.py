"""
Inference engine interface and the ONNX Runtime implementation.

An engine is a named-tensor-in / named-tensor-out callable. Engines are only
handed out paired inside a Session (see session.py).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Union

import numpy as np
import onnxruntime as ort

from models.errors import InferenceFailure, ModelLoadError


DEFAULT_PROVIDERS = ["CPUExecutionProvider"]


@dataclass(frozen=True)
class FilePath:
    """Model binary stored on disk."""
    path: str

    @property
    def name(self) -> str:
        return os.path.basename(self.path)


@dataclass(frozen=True)
class InMemoryBuffer:
    """Model binary already read into memory (e.g. an upload)."""
    data: bytes
    name: str = "<memory>"


ModelSource = Union[FilePath, InMemoryBuffer]

# Declared tensor shape; dynamic axes are reported as str or None.
DeclaredShape = Tuple[Union[int, str, None], ...]


class InferenceEngine(Protocol):
    name: str

    def run(self, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        ...


class OnnxEngine(InferenceEngine):
    """Wraps a single onnxruntime.InferenceSession."""

    def __init__(self, session: ort.InferenceSession, name: str):
        self._session = session
        self.name = name
        self._output_names = [o.name for o in session.get_outputs()]

    @classmethod
    def load(cls, source: ModelSource, providers: Optional[Sequence[str]] = None) -> "OnnxEngine":
        """
        Create an engine from a model source.

        Raises:
            ModelLoadError: If the file is missing or the runtime rejects the binary.
        """
        if isinstance(source, FilePath):
            if not os.path.exists(source.path):
                raise ModelLoadError(f"Model file not found: {source.path}", source.name)
            model: Union[str, bytes] = source.path
        elif isinstance(source, InMemoryBuffer):
            if not source.data:
                raise ModelLoadError("Model buffer is empty", source.name)
            model = source.data
        else:
            raise TypeError(f"Unsupported model source: {type(source).__name__}")

        try:
            session = ort.InferenceSession(model, providers=list(providers or DEFAULT_PROVIDERS))
        except Exception as e:
            raise ModelLoadError(f"Failed to load model '{source.name}': {e}", source.name) from e

        logging.info(f"Model loaded: {source.name}")
        return cls(session, source.name)

    @property
    def input_shapes(self) -> Dict[str, DeclaredShape]:
        return {i.name: tuple(i.shape) for i in self._session.get_inputs()}

    @property
    def output_names(self) -> List[str]:
        return list(self._output_names)

    def run(self, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        try:
            outputs = self._session.run(self._output_names, inputs)
        except Exception as e:
            raise InferenceFailure(f"Inference failed in '{self.name}': {e}", self.name) from e
        return dict(zip(self._output_names, outputs))
