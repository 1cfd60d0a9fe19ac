"""Ultralytics YOLO detector integration.

The model is loaded lazily in `warm_up()` so constructing a detector is cheap
and scan timing only reflects inference. Torch stays an optional runtime
dependency: ONNX exports run without importing it.
"""

from __future__ import annotations

import importlib
import logging
import os
import threading
from collections.abc import Sequence
from contextlib import nullcontext
from typing import Any

import numpy as np
from ultralytics import YOLO

from subjectscan.core.errors import DetectionError
from subjectscan.core.geometry import xyxy_to_xywh
from subjectscan.core.types import Detection, Frame

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "yolo11n.pt"
# Upper bound on raw detections per call, before the scanner's own cap.
DEFAULT_MAX_DETECTIONS = 20


class YoloObjectDetector:
    """Multi-class object detector wrapper around Ultralytics YOLO.

    Supports Torch `.pt` models and ONNX exports. Runs on CPU unless another
    device is given; thread counts can be tuned via `SUBJECTSCAN_TORCH_THREADS`.
    """

    _torch_threads_configured: bool = False

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        conf: float = 0.25,
        classes: Sequence[str] | None = None,
        device: str = "cpu",
        max_detections: int = DEFAULT_MAX_DETECTIONS,
    ) -> None:
        """Create a detector.

        Args:
            model_name: Model path/name understood by Ultralytics (e.g. `yolo11n.pt`
                or an `.onnx` export).
            conf: Confidence floor applied inside the Ultralytics predictor. The
                scanner applies its own `min_score` on top.
            classes: Optional allow-list of class names (e.g. `["person", "dog"]`).
            device: Inference device passed to Ultralytics.
            max_detections: Cap on detections returned by one `detect()` call.
        """

        self.model_name = model_name
        self.is_onnx = model_name.lower().endswith(".onnx")
        self.conf = conf
        self.classes = list(classes) if classes else None
        self.device = device
        self.max_detections = max_detections
        self.model: Any | None = None
        self._names: dict[int, str] = {}
        self._predict_kwargs: dict[str, Any] = {}
        self._torch_inference_mode: Any | None = None
        self._load_lock = threading.Lock()

    @classmethod
    def _configure_torch_threads_from_env(cls) -> None:
        """Configure torch thread counts from the environment (one-time)."""

        if cls._torch_threads_configured:
            return
        cls._torch_threads_configured = True

        threads_s = os.getenv("SUBJECTSCAN_TORCH_THREADS")
        if threads_s is None or not threads_s.strip():
            return
        try:
            torch = importlib.import_module("torch")
            torch.set_num_threads(max(1, int(threads_s)))
        except (ImportError, ValueError, RuntimeError):
            logger.warning("Ignoring SUBJECTSCAN_TORCH_THREADS=%r", threads_s)

    def warm_up(self) -> None:
        """Load the model on first use; later calls return immediately."""

        if self.model is not None:
            return
        with self._load_lock:
            if self.model is not None:
                return
            self._configure_torch_threads_from_env()
            logger.info("Loading detection model %s", self.model_name)
            model = YOLO(self.model_name)
            if not self.is_onnx:
                try:
                    torch = importlib.import_module("torch")
                    self._torch_inference_mode = torch.inference_mode
                except ImportError:
                    self._torch_inference_mode = None
                # Avoid .to(device) on ONNX exports; Ultralytics raises TypeError.
                model.to(self.device)
            self._names = {int(k): str(v) for k, v in dict(getattr(model, "names", {}) or {}).items()}
            self._predict_kwargs = {
                "conf": self.conf,
                "verbose": False,
                "device": self.device,
                "max_det": self.max_detections,
            }
            if self.classes:
                wanted = set(self.classes)
                ids = [cid for cid, name in self._names.items() if name in wanted]
                missing = wanted - {self._names[cid] for cid in ids}
                if missing:
                    logger.warning("Model %s has no classes named %s", self.model_name, sorted(missing))
                self._predict_kwargs["classes"] = ids
            self.model = model

    def detect(self, frame: Frame) -> list[Detection]:
        """Run inference on a single frame.

        Args:
            frame: Input image as a numpy array in OpenCV (BGR) format.

        Returns:
            Detections with `(x, y, w, h)` boxes in full-frame pixel coordinates.

        Raises:
            DetectionError: When the model cannot be loaded or inference fails.
        """

        try:
            self.warm_up()
            infer_ctx = (
                self._torch_inference_mode()
                if self._torch_inference_mode is not None
                else nullcontext()
            )
            with infer_ctx:
                results = self.model.predict(frame, **self._predict_kwargs)
        except Exception as exc:
            raise DetectionError(f"Inference failed: {exc}") from exc

        if not results:
            return []

        # Single-frame inference => first result.
        result = results[0]
        boxes = getattr(result, "boxes", None)
        if boxes is None or len(boxes) == 0:
            return []

        data = boxes.data
        if hasattr(data, "cpu"):
            data = data.cpu()
        data_np = data.numpy() if hasattr(data, "numpy") else np.asarray(data)
        # Ultralytics Boxes.data = (x1,y1,x2,y2,conf,cls)
        if data_np.ndim != 2 or data_np.shape[1] < 6:
            return []

        names = getattr(result, "names", None) or self._names
        out: list[Detection] = []
        for row in data_np[: self.max_detections]:
            cls_id = int(row[5])
            out.append(
                Detection(
                    label=str(names.get(cls_id, cls_id)),
                    bbox=xyxy_to_xywh((float(row[0]), float(row[1]), float(row[2]), float(row[3]))),
                    score=float(row[4]),
                )
            )
        return out
