"""Ultralytics YOLO region backend."""
import logging
from typing import Any, Dict, List, Mapping
import numpy as np
from ultralytics import YOLO
from .base_backend import RegionBackend
from ..core.entities import Region
from ..core.exceptions import ModelError

logger = logging.getLogger(__name__)


class YoloBackend(RegionBackend):
    """Runs a YOLO detection model and converts its boxes to Regions."""

    def __init__(self, config: Mapping[str, Any]):
        super().__init__(config)
        self._model = None

    def load(self, weights: str) -> None:
        try:
            model = YOLO(weights)
        except Exception as e:
            self._model, self._loaded = None, False
            raise ModelError(f"Failed to load YOLO weights {weights}: {e}") from e

        self._model, self.weights, self._loaded = model, weights, True
        logger.info(f"YOLO weights loaded from {weights} on {getattr(model, 'device', 'unknown device')}")

    def detect_regions(self, image: np.ndarray, **overrides) -> List[Region]:
        """Detect regions; ``conf`` and ``iou`` override the configured thresholds."""
        if self._model is None or not self._loaded:
            raise ModelError("YOLO weights are not loaded")

        conf = overrides.get('conf', self.config.get('detection_confidence_threshold', 0.5))
        iou = overrides.get('iou', self.config.get('detection_iou_threshold', 0.45))
        try:
            outputs = self._model(image, conf=conf, iou=iou, verbose=False)
        except Exception as e:
            raise ModelError(f"YOLO inference failed: {e}") from e

        regions: List[Region] = []
        for output in outputs:
            boxes = output.boxes
            if boxes is None:
                continue
            class_names = getattr(output, 'names', None) or {}
            coords = np.clip(boxes.xyxyn.cpu().numpy(), 0.0, 1.0)
            scores = boxes.conf.cpu().numpy()
            class_ids = boxes.cls.cpu().numpy().astype(int)

            for box, score, class_id in zip(coords, scores, class_ids):
                x1, y1, x2, y2 = (float(v) for v in box)
                if x2 <= x1 or y2 <= y1:
                    logger.debug(f"Dropping zero-area box {box.tolist()}")
                    continue
                regions.append(Region(x1, y1, x2, y2, confidence=float(score),
                                      label=str(class_names.get(int(class_id), int(class_id)))))
        return regions

    def info(self) -> Dict[str, Any]:
        details = super().info()
        details['backend'] = 'ultralytics'
        if self._model is not None and self._loaded:
            details['device'] = str(getattr(self._model, 'device', 'unknown'))
            details['class_names'] = dict(getattr(self._model, 'names', {}) or {})
        return details
