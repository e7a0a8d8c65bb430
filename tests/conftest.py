"""Pytest configuration and shared fixtures for the text reader.

Fakes stand in for the camera, detector, OCR engine and speech engine so the
pipeline can be driven deterministically from the test thread, which acts as
the main thread by pumping a QueueDispatcher.
"""
import sys
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional

import numpy as np
import pytest

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from textreader.config.settings import Config
from textreader.core.entities import CaptureFormat, CapturedImage, Frame, Region
from textreader.core.threading_manager import QueueDispatcher
from textreader.services.capture_pipeline import CapturePipeline
from textreader.services.recognition_service import RecognitionService, TextRecognizer
from textreader.services.speech_service import SpeechEngine, SpeechNotifier
from textreader.services.webcam_service import CaptureSource


# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)


class FakeCaptureSource(CaptureSource):
    """Capture source returning a prepared image, an error, or a held future."""

    def __init__(self, image: Optional[np.ndarray] = None, error: Optional[Exception] = None,
                 hold: bool = False, fmt=CaptureFormat.BGR):
        self.image = image
        self.error = error
        self.hold = hold
        self.format = fmt
        self.calls = 0
        self.pending: List[Future] = []

    def captured(self) -> CapturedImage:
        height, width = self.image.shape[:2]
        return CapturedImage(format=self.format, planes=[self.image], width=width, height=height)

    def capture(self) -> Future:
        self.calls += 1
        future: Future = Future()
        if self.hold:
            self.pending.append(future)
        elif self.error is not None:
            future.set_exception(self.error)
        else:
            future.set_result(self.captured())
        return future


class FakeDetectionService:
    """Detector reporting fixed regions through the listener."""

    def __init__(self, regions: Optional[List[Region]] = None, inference_time_ms: int = 42,
                 error: Optional[Exception] = None, empty_via_callback: bool = True):
        self.regions = regions or []
        self.inference_time_ms = inference_time_ms
        self.error = error
        self.empty_via_callback = empty_via_callback
        self.frames: List[Frame] = []

    def detect(self, frame, listener) -> None:
        self.frames.append(frame)
        if self.error is not None:
            raise self.error
        if not self.regions and self.empty_via_callback:
            listener.on_empty_detect()
        else:
            listener.on_detect(list(self.regions), self.inference_time_ms)


class PixelTextRecognizer(TextRecognizer):
    """Reads the gray level at the crop center and maps it to text."""

    def __init__(self, texts: dict, failing_levels=(), delay: Callable[[int], float] = None,
                 block: Optional[threading.Event] = None):
        self.texts = texts
        self.failing_levels = set(failing_levels)
        self.delay = delay
        self.block = block
        self.calls = 0
        self._lock = threading.Lock()

    def recognize(self, image: np.ndarray) -> str:
        with self._lock:
            self.calls += 1
        level = int(image[image.shape[0] // 2, image.shape[1] // 2, 0])
        if self.block is not None:
            self.block.wait(5)
        if self.delay is not None:
            threading.Event().wait(self.delay(level))
        if level in self.failing_levels:
            raise RuntimeError(f"OCR engine failed on level {level}")
        return self.texts.get(level, "")


class FakeSpeechEngine(SpeechEngine):
    """Records spoken text; optionally fails every request."""

    def __init__(self, error: Optional[Exception] = None, speaking: bool = False):
        self.error = error
        self.speaking = speaking
        self.spoken: List[str] = []
        self.stops = 0
        self.utterance_ids: List[str] = []

    def start(self, on_status=None) -> None:
        pass

    def speak(self, text, interrupt=True, utterance_id="text_reader_output") -> None:
        if self.error is not None:
            raise self.error
        self.spoken.append(text)
        self.utterance_ids.append(utterance_id)

    def is_speaking(self) -> bool:
        return self.speaking

    def stop(self) -> None:
        self.stops += 1
        self.speaking = False


def paint_regions(width: int, height: int, regions: List[Region], levels: List[int]) -> np.ndarray:
    """Black BGR image with each region filled with its own gray level."""
    image = np.zeros((height, width, 3), dtype=np.uint8)
    for region, level in zip(regions, levels):
        x1, y1 = int(region.x1 * width), int(region.y1 * height)
        x2, y2 = int(region.x2 * width), int(region.y2 * height)
        image[y1:y2, x1:x2] = level
    return image


@pytest.fixture
def config():
    """Default configuration with a short recognition timeout."""
    return Config(recognition_timeout_s=5.0)


@pytest.fixture
def dispatcher():
    return QueueDispatcher()


@pytest.fixture
def executors():
    """Capture, processing and recognition worker contexts."""
    pools = {
        'capture': ThreadPoolExecutor(max_workers=1, thread_name_prefix="capture"),
        'processing': ThreadPoolExecutor(max_workers=1, thread_name_prefix="processing"),
        'recognition': ThreadPoolExecutor(max_workers=4, thread_name_prefix="recognition"),
    }
    yield pools
    for pool in pools.values():
        pool.shutdown(wait=True, cancel_futures=True)


@pytest.fixture
def stop_region():
    return Region(x1=0.1, y1=0.1, x2=0.3, y2=0.2, confidence=0.9, label="text")


@pytest.fixture
def sample_frame():
    """Provide a small read-only frame with a gradient pattern."""
    image = np.zeros((60, 80, 3), dtype=np.uint8)
    image[:, :, 0] = np.arange(80, dtype=np.uint8)[None, :]
    image[:, :, 1] = np.arange(60, dtype=np.uint8)[:, None]
    return Frame.from_array(image)


@pytest.fixture
def make_pipeline(config, dispatcher, executors):
    """Factory building a CapturePipeline around fakes; collects reports."""

    def factory(capture_source, detection_service, recognizer, speech_engine=None,
                timeout_s: Optional[float] = 5.0, pipeline_config=None):
        speech_engine = speech_engine or FakeSpeechEngine()
        reports = []
        pipeline = CapturePipeline(
            capture_source=capture_source,
            detection_service=detection_service,
            recognition_service=RecognitionService(recognizer, executors['recognition'], timeout_s=timeout_s),
            notifier=SpeechNotifier(speech_engine),
            dispatcher=dispatcher,
            capture_executor=executors['capture'],
            processing_executor=executors['processing'],
            config=pipeline_config or config,
            on_outcome=reports.append,
        )
        return pipeline, reports, speech_engine

    return factory
