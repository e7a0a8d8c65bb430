"""Detector adapter that reports regions through a listener."""
from __future__ import annotations
import logging
import time
from typing import List, Protocol
from ..core.entities import DetectionResult, Frame, Region
from ..core.exceptions import DetectionError

logger = logging.getLogger(__name__)


class DetectorListener(Protocol):
    def on_detect(self, regions: List[Region], inference_time_ms: int) -> None: ...

    def on_empty_detect(self) -> None: ...


class DetectionService:
    """Runs a detector backend on a frame.

    Results are delivered through one of two listener paths: ``on_detect``
    with the regions and the measured inference time, or ``on_empty_detect``
    when the backend found nothing.
    """

    def __init__(self, backend, config):
        self.backend = backend
        self.config = config

    def load(self) -> None:
        """Load the configured model unless the backend already has one."""
        if not self.backend.loaded:
            self.backend.load(self.config.get('model_path', 'yolo11n.pt'))
        logger.info(f"Detector ready: {self.backend.info()}")

    def unload(self) -> None:
        """Release the backend model."""
        self.backend.unload()
        logger.info("Detector unloaded")

    def predict(self, frame: Frame) -> DetectionResult:
        """Synchronous detection. Raises DetectionError on backend failure."""
        start = time.perf_counter()
        try:
            regions = list(self.backend.detect_regions(frame.image))
        except Exception as e:
            raise DetectionError(f"Detection failed: {e}") from e
        inference_ms = int((time.perf_counter() - start) * 1000)
        logger.info(f"Detected {len(regions)} region(s) in {inference_ms}ms")
        return DetectionResult(regions=regions, inference_time_ms=inference_ms)

    def detect(self, frame: Frame, listener: DetectorListener) -> None:
        """Detect and notify ``listener`` on the calling thread."""
        result = self.predict(frame)
        if not result.regions:
            listener.on_empty_detect()
        else:
            listener.on_detect(result.regions, result.inference_time_ms)
