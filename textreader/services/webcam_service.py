"""Capture sources delivering one still image per request."""

import cv2
import threading
import logging
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Optional, Union

from ..core.entities import CaptureFormat, CapturedImage, ImagePlane
from ..core.exceptions import CaptureError

logger = logging.getLogger(__name__)


class CaptureSource(ABC):
    """Produces a CapturedImage asynchronously, or fails with CaptureError."""

    @abstractmethod
    def capture(self) -> Future:
        pass

    def close(self) -> None:
        pass


class WebcamService(CaptureSource):
    """Single-shot capture from an OpenCV camera."""

    def __init__(self, executor: Executor, camera_index: int = 0, width: int = 1280,
                 height: int = 960, rotation_degrees: int = 0):
        """Initialize webcam service.

        Args:
            executor: Worker context that runs capture requests
            camera_index: Camera device index
            width: Requested frame width
            height: Requested frame height
            rotation_degrees: Clockwise rotation needed to display frames upright
        """
        self.executor = executor
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.rotation_degrees = rotation_degrees
        self._capture: Optional[cv2.VideoCapture] = None
        self._lock = threading.Lock()

    def open(self) -> bool:
        """Open the camera. Returns True on success."""
        with self._lock:
            if self._capture is not None and self._capture.isOpened():
                return True
            try:
                capture = cv2.VideoCapture(self.camera_index)
            except Exception as e:
                logger.error(f"Error opening camera {self.camera_index}: {e}")
                return False

            if not capture.isOpened():
                logger.error(f"Failed to open camera {self.camera_index}")
                capture.release()
                return False

            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            actual_width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
            actual_height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
            logger.info(f"Camera {self.camera_index} opened: {actual_width}x{actual_height}")
            self._capture = capture
            return True

    def is_opened(self) -> bool:
        return self._capture is not None and self._capture.isOpened()

    def capture(self) -> Future:
        return self.executor.submit(self._capture_once)

    def _capture_once(self) -> CapturedImage:
        if not self.is_opened() and not self.open():
            raise CaptureError(f"Camera {self.camera_index} is not available")

        with self._lock:
            ret, frame = self._capture.read()

        if not ret or frame is None:
            raise CaptureError("Failed to read frame from camera")

        height, width = frame.shape[:2]
        logger.debug(f"Captured {width}x{height} frame")
        return CapturedImage(
            format=CaptureFormat.BGR,
            planes=[frame],
            width=width,
            height=height,
            rotation_degrees=self.rotation_degrees,
        )

    def close(self) -> None:
        """Release the camera."""
        with self._lock:
            if self._capture is not None:
                self._capture.release()
                self._capture = None
                logger.info("Camera released")


class ImageFileCaptureSource(CaptureSource):
    """Serves the compressed bytes of an image file as a capture."""

    def __init__(self, executor: Executor, path: Union[str, Path], rotation_degrees: int = 0):
        self.executor = executor
        self.path = Path(path)
        self.rotation_degrees = rotation_degrees

    def capture(self) -> Future:
        return self.executor.submit(self._read)

    def _read(self) -> CapturedImage:
        try:
            data = self.path.read_bytes()
        except OSError as e:
            raise CaptureError(f"Cannot read image file {self.path}: {e}") from e
        return CapturedImage(
            format=CaptureFormat.JPEG,
            planes=[ImagePlane(buffer=data)],
            width=0,
            height=0,
            rotation_degrees=self.rotation_degrees,
        )
