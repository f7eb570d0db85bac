"""
Frame preprocessing: letterbox, color conversion and normalization into the
detector's NCHW float32 input.
"""

from .letterbox import LetterboxTransform, preprocess, to_rgb

__all__ = [
    "LetterboxTransform",
    "preprocess",
    "to_rgb",
]
