"""End-to-end scans from an image file through real decoding and cropping."""
import cv2
import numpy as np
import pytest

from conftest import FakeDetectionService, FakeSpeechEngine, PixelTextRecognizer, paint_regions
from textreader.config.settings import Config
from textreader.core.entities import PipelineState, Region, Success
from textreader.core.threading_manager import QueueDispatcher, WorkerContexts
from textreader.main import build_pipeline
from textreader.services.capture_pipeline import CapturePipeline
from textreader.services.recognition_service import RecognitionService
from textreader.services.speech_service import SpeechNotifier
from textreader.services.webcam_service import ImageFileCaptureSource

pytestmark = pytest.mark.integration

REGIONS = [
    Region(0.05, 0.1, 0.45, 0.4, 0.9, "text"),
    Region(0.55, 0.6, 0.95, 0.9, 0.8, "text"),
]


@pytest.fixture
def workers():
    contexts = WorkerContexts()
    yield contexts
    contexts.shutdown(wait=True)


@pytest.fixture
def sign_jpeg(tmp_path):
    # Flat blocks survive JPEG compression well enough to read back a level.
    image = paint_regions(320, 240, REGIONS, [60, 200])
    path = tmp_path / "sign.jpg"
    assert cv2.imwrite(str(path), image, [cv2.IMWRITE_JPEG_QUALITY, 100])
    return path


class BandRecognizer(PixelTextRecognizer):
    """Maps gray levels to text by band, tolerating compression noise."""

    def recognize(self, image: np.ndarray) -> str:
        level = int(image[image.shape[0] // 2, image.shape[1] // 2].mean())
        return "EXIT" if level < 128 else "Gate 4"


def build(workers, dispatcher, path, rotation=0, config=None):
    config = config or Config()
    speech = FakeSpeechEngine()
    reports = []
    pipeline = CapturePipeline(
        capture_source=ImageFileCaptureSource(workers.get("capture"), path, rotation_degrees=rotation),
        detection_service=FakeDetectionService(REGIONS, inference_time_ms=25),
        recognition_service=RecognitionService(
            BandRecognizer({}), workers.get("recognition", max_workers=2), timeout_s=5.0
        ),
        notifier=SpeechNotifier(speech),
        dispatcher=dispatcher,
        capture_executor=workers.get("capture"),
        processing_executor=workers.get("processing"),
        config=config,
        on_outcome=reports.append,
    )
    return pipeline, reports, speech


def test_scan_from_jpeg_file(workers, sign_jpeg):
    dispatcher = QueueDispatcher()
    pipeline, reports, speech = build(workers, dispatcher, sign_jpeg)

    assert pipeline.trigger_capture()
    assert dispatcher.run_until(lambda: reports, timeout=5)

    report = reports[0]
    assert report.outcome == Success("EXIT. Gate 4.")
    assert report.inference_label == "25ms + OCR"
    assert speech.spoken == ["EXIT. Gate 4."]
    assert pipeline.state is PipelineState.IDLE


def test_consecutive_scans_reuse_pipeline(workers, sign_jpeg):
    dispatcher = QueueDispatcher()
    pipeline, reports, speech = build(workers, dispatcher, sign_jpeg)

    for expected in (1, 2):
        assert pipeline.trigger_capture()
        assert dispatcher.run_until(lambda: len(reports) == expected, timeout=5)

    assert reports[0].run_id != reports[1].run_id
    assert len(speech.spoken) == 2


def test_missing_file_reports_camera_error(workers, tmp_path):
    dispatcher = QueueDispatcher()
    pipeline, reports, speech = build(workers, dispatcher, tmp_path / "absent.jpg")

    pipeline.trigger_capture()
    assert dispatcher.run_until(lambda: reports, timeout=5)

    assert speech.spoken == ["Scan failed. Camera error."]


def test_build_pipeline_wires_production_services(workers, monkeypatch):
    loaded = []
    monkeypatch.setattr(
        "textreader.backends.yolo_backend.YoloBackend.load",
        lambda self, weights: loaded.append(weights),
    )
    config = Config(model_path="signs.pt", recognition_timeout_s=3.0)

    pipeline = build_pipeline(config, QueueDispatcher(), workers, FakeSpeechEngine())

    assert loaded == ["signs.pt"]
    assert pipeline.recognition_service.timeout_s == 3.0
    assert pipeline.recognition_service.recognizer.tesseract_config == config.tesseract_config
    assert pipeline.capture_source.camera_index == config.camera_index
    assert pipeline.is_idle()
