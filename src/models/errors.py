"""
Exceptions raised by the detection pipeline.
"""

from __future__ import annotations

from typing import Optional


class DetectionError(Exception):
    """Base exception for detection pipeline errors."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.message = message
        self.source = source
        super().__init__(self.message)


class InvalidFrame(DetectionError):
    """Raised when a frame is empty or cannot be decoded."""


class ModelLoadError(DetectionError):
    """Raised when a model binary is malformed or incompatible."""


class ShapeMismatch(DetectionError):
    """Raised when a tensor shape disagrees with the session's input shape."""

    def __init__(self, name: str, expected: tuple, actual: tuple, source: Optional[str] = None):
        self.name = name
        self.expected = tuple(expected)
        self.actual = tuple(actual)
        message = f"Input '{name}' has shape {self.actual}, expected {self.expected}"
        super().__init__(message, source)


class InferenceFailure(DetectionError):
    """Raised when the inference runtime fails during a run call."""
