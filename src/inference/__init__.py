"""
Inference layer: ONNX Runtime engines, the paired detector/NMS session and
the decoder for NMS output rows.
"""

from .engine import FilePath, InMemoryBuffer, InferenceEngine, ModelSource, OnnxEngine
from .session import Session, SessionHolder, load_session, load_session_async
from .decoder import decode

__all__ = [
    "FilePath",
    "InMemoryBuffer",
    "InferenceEngine",
    "ModelSource",
    "OnnxEngine",
    "Session",
    "SessionHolder",
    "load_session",
    "load_session_async",
    "decode",
]
