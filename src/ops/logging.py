"""
Logging setup.
"""

from __future__ import annotations

import logging
import os
from typing import List, Optional

import onnxruntime as ort


# onnxruntime severities: 0 verbose, 1 info, 2 warning, 3 error, 4 fatal
_ORT_SEVERITY = {
    "DEBUG": 1,
    "INFO": 2,
    "WARNING": 2,
    "ERROR": 3,
    "CRITICAL": 4,
}


def setup_logging(log_path: Optional[str], log_level: str) -> None:
    """
    Configure the root logger with a stream handler and, when log_path is
    set, a file handler. onnxruntime's own logger is set to the matching
    severity.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )
    ort.set_default_logger_severity(_ORT_SEVERITY.get(log_level, 2))
