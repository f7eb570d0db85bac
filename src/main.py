"""
Command-line entry point for the detector.

Runs the detector + NMS model pair on a single image or on a live video
source and renders the boxes with OpenCV.

Usage:
    python src/main.py --config config/config.yaml --image photo.jpg --output out.jpg
    python src/main.py --config config/config.yaml --video 0 --display

Arguments:
    --config: Path to configuration file
    --image: Run one detection on an image file
    --output: Where to write the annotated image (image mode)
    --video: Camera index, video file or stream URL (overrides source.device_id)
    --display: Show results in an OpenCV window
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, Optional, Tuple

import cv2
import yaml

from inference.engine import FilePath
from inference.session import SessionHolder, load_session_async
from models.config import AppConfig, DetectionConfig
from models.errors import DetectionError
from observation import ImageSource, ImageSourceConfig, create_source_from_config
from ops.logging import setup_logging
from pipeline.scheduler import FrameScheduler
from pipeline.sinks import OverlaySink

WINDOW_NAME = "Detector"
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        config_dir = os.path.dirname(config_path)
        base_path = os.path.join(config_dir, "default.yaml")
        merged: Dict[str, Any] = _read_yaml(base_path) if os.path.exists(base_path) else {}

        local_overrides_path = os.path.join(config_dir, "config.yaml")
        if os.path.exists(local_overrides_path):
            merged = _deep_merge(merged, _read_yaml(local_overrides_path))

        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            merged = _deep_merge(merged, _read_yaml(config_path))

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration structure and values.

    Returns:
        Tuple of (is_valid, error_message)
    """
    for section in ("model", "detection", "log_path", "log_level"):
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    model = config.get("model") or {}
    for key in ("detector", "nms"):
        if not isinstance(model.get(key), str) or not model.get(key):
            return False, f"model.{key} must be a non-empty path"
    shape = model.get("input_shape", [1, 3, 640, 640])
    if not isinstance(shape, list) or len(shape) != 4:
        return False, "model.input_shape must be a list of [batch, channels, height, width]"
    if not all(isinstance(x, int) and x > 0 for x in shape):
        return False, "model.input_shape values must be positive integers"
    if shape[0] != 1 or shape[1] != 3:
        return False, "model.input_shape must have batch 1 and 3 channels"
    providers = model.get("providers", ["CPUExecutionProvider"])
    if not isinstance(providers, list) or not providers:
        return False, "model.providers must be a non-empty list"

    try:
        DetectionConfig.from_dict(config.get("detection") or {}).validate()
    except ValueError as e:
        return False, f"detection: {e}"

    source = config.get("source") or {}
    if "device_id" in source and not isinstance(source["device_id"], (int, str)):
        return False, "source.device_id must be an integer (index) or string (file/URL)"
    if "fps" in source and (not isinstance(source["fps"], int) or source["fps"] <= 0):
        return False, "source.fps must be a positive integer"

    scheduler = config.get("scheduler") or {}
    if "paint_fps" in scheduler:
        fps = scheduler["paint_fps"]
        if not isinstance(fps, (int, float)) or fps <= 0:
            return False, "scheduler.paint_fps must be a positive number"
    if "max_consecutive_failures" in scheduler:
        mcf = scheduler["max_consecutive_failures"]
        if not isinstance(mcf, int) or mcf <= 0:
            return False, "scheduler.max_consecutive_failures must be a positive integer"

    labels = config.get("labels") or []
    if not isinstance(labels, list) or not all(isinstance(x, str) for x in labels):
        return False, "labels must be a list of class names"

    if config["log_level"] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def run_image(scheduler: FrameScheduler, sink: OverlaySink, args: argparse.Namespace) -> int:
    source = ImageSource(ImageSourceConfig(source_id=os.path.basename(args.image), path=args.image))
    with source:
        detections = scheduler.detect_image(source.frame)

    print(json.dumps([d.to_dict() for d in detections], indent=2))

    annotated = sink.latest()
    if args.output and annotated is not None:
        cv2.imwrite(args.output, annotated)
        logging.info(f"Annotated image written to {args.output}")
    if args.display and annotated is not None:
        cv2.imshow(WINDOW_NAME, annotated)
        cv2.waitKey(0)
        cv2.destroyAllWindows()
    return 0


def run_video(scheduler: FrameScheduler, sink: OverlaySink, app_config: AppConfig, args: argparse.Namespace) -> int:
    source_cfg = app_config.source.to_dict()
    if args.video is not None:
        source_cfg["device_id"] = args.video
    stream = scheduler.start_video(create_source_from_config(source_cfg))

    delay_ms = max(int(1000 / app_config.scheduler.paint_fps), 1)
    try:
        while stream.is_running:
            if not args.display:
                stream.wait(0.5)
                continue
            annotated = sink.latest()
            if annotated is not None:
                cv2.imshow(WINDOW_NAME, annotated)
            if cv2.waitKey(delay_ms) & 0xFF == ord("q"):
                scheduler.stop()
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        scheduler.stop()
        stream.wait()
        if args.display:
            cv2.destroyAllWindows()

    if stream.error is not None:
        logging.error(f"Video stream failed: {stream.error}")
        return 1
    return 0


def main() -> int:
    """Main application function."""
    parser = argparse.ArgumentParser(description="Real-time object detection (detector + NMS)")
    parser.add_argument("--config", type=str, default="config/config.yaml",
                        help="Path to configuration file")
    parser.add_argument("--image", type=str, default=None,
                        help="Run detection once on an image file")
    parser.add_argument("--output", type=str, default=None,
                        help="Write the annotated image here (image mode)")
    parser.add_argument("--video", type=str, default=None,
                        help="Camera index, video file or stream URL")
    parser.add_argument("--display", action="store_true",
                        help="Show results in a window")
    args = parser.parse_args()

    config = load_config(args.config)

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        return 1

    app_config = AppConfig.from_dict(config)
    setup_logging(app_config.log_path, app_config.log_level)

    future = load_session_async(
        FilePath(app_config.model.detector),
        FilePath(app_config.model.nms),
        input_shape=app_config.model.shape,
        providers=app_config.model.providers,
        warmup=app_config.model.warmup,
    )
    try:
        session = future.result()
    except DetectionError as e:
        logging.error(f"Failed to load models: {e}")
        return 1

    sink = OverlaySink(labels=app_config.labels)
    scheduler = FrameScheduler(
        SessionHolder(session),
        sink,
        config=app_config.detection,
        scheduler_config=app_config.scheduler,
    )

    try:
        if args.image:
            return run_image(scheduler, sink, args)
        return run_video(scheduler, sink, app_config, args)
    except DetectionError as e:
        logging.error(f"Detection failed: {e}")
        return 1
    except RuntimeError as e:
        logging.error(f"{e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
