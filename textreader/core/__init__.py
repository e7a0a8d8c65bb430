"""Core domain entities, errors and runtime plumbing."""

from .entities import (
    CaptureFormat, CapturedImage, Crop, CropRect, DetectionResult, FailureKind,
    Frame, ImagePlane, NoDetections, PipelineOutcome, PipelineState,
    RecognitionFailure, RecognitionResult, Region, ScanReport, Success,
)
from .exceptions import (
    ApplicationError, CaptureError, ConfigError, DecodeError, DetectionError,
    ModelError, RecognitionError, RecognitionTimeoutError, SpeechError,
)

__all__ = [
    "CaptureFormat", "CapturedImage", "Crop", "CropRect", "DetectionResult",
    "FailureKind", "Frame", "ImagePlane", "NoDetections", "PipelineOutcome",
    "PipelineState", "RecognitionFailure", "RecognitionResult", "Region",
    "ScanReport", "Success",
    "ApplicationError", "CaptureError", "ConfigError", "DecodeError",
    "DetectionError", "ModelError", "RecognitionError",
    "RecognitionTimeoutError", "SpeechError",
]
