"""Services package for the capture-to-speech pipeline."""

from .webcam_service import CaptureSource, WebcamService, ImageFileCaptureSource
from .detection_service import DetectionService
from .recognition_service import TextRecognizer, TesseractRecognizer, RecognitionService
from .result_aggregator import merge_texts, outcome_messages
from .speech_service import SpeechEngine, Pyttsx3SpeechEngine, SpeechNotifier, SpeechStatus
from .capture_pipeline import CapturePipeline

__all__ = [
    "CaptureSource", "WebcamService", "ImageFileCaptureSource",
    "DetectionService",
    "TextRecognizer", "TesseractRecognizer", "RecognitionService",
    "merge_texts", "outcome_messages",
    "SpeechEngine", "Pyttsx3SpeechEngine", "SpeechNotifier", "SpeechStatus",
    "CapturePipeline",
]
