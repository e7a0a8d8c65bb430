"""Domain entities (data-only structures) passed between pipeline stages."""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence, Union

import numpy as np


class CaptureFormat(str, Enum):
    """Raster layouts a capture source may deliver."""
    JPEG = "jpeg"
    YUV_420_888 = "yuv_420_888"
    BGR = "bgr"


@dataclass(frozen=True, slots=True)
class ImagePlane:
    buffer: bytes
    pixel_stride: int = 1
    row_stride: Optional[int] = None


@dataclass(frozen=True, slots=True)
class CapturedImage:
    """Undecoded output of one capture request."""
    format: Union[CaptureFormat, str]
    planes: Sequence[Any]  # ImagePlane for encoded formats, ndarray for BGR
    width: int
    height: int
    rotation_degrees: int = 0


@dataclass(frozen=True, slots=True)
class Frame:
    """Decoded, orientation-corrected BGR image. The pixel buffer is read-only."""
    image: np.ndarray

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @classmethod
    def from_array(cls, image: np.ndarray) -> "Frame":
        data = np.ascontiguousarray(image).copy()
        data.flags.writeable = False
        return cls(image=data)


@dataclass(frozen=True, slots=True)
class Region:
    """Detector box in normalized [0, 1] image coordinates."""
    x1: float
    y1: float
    x2: float
    y2: float
    confidence: float = 0.0
    label: str = ""

    def __post_init__(self):
        for value in (self.x1, self.y1, self.x2, self.y2):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Region coordinates must be within [0, 1], got {value}")
        if self.x1 >= self.x2 or self.y1 >= self.y2:
            raise ValueError("Region requires x1 < x2 and y1 < y2")


@dataclass(frozen=True, slots=True)
class CropRect:
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height


@dataclass(frozen=True, slots=True)
class Crop:
    """Independent sub-image for exactly one Region."""
    index: int
    rect: CropRect
    image: np.ndarray


@dataclass(frozen=True, slots=True)
class RecognitionResult:
    index: int
    text: str


@dataclass(frozen=True, slots=True)
class DetectionResult:
    regions: List[Region]
    inference_time_ms: int


class PipelineState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    DETECTING = "detecting"
    RECOGNIZING = "recognizing"
    DONE = "done"


class FailureKind(str, Enum):
    CAPTURE = "capture"
    DECODE = "decode"
    DETECTION = "detection"
    RECOGNITION = "recognition"
    TIMEOUT = "timeout"


@dataclass(frozen=True, slots=True)
class NoDetections:
    pass


@dataclass(frozen=True, slots=True)
class Success:
    merged_text: str

    @property
    def has_text(self) -> bool:
        return bool(self.merged_text)


@dataclass(frozen=True, slots=True)
class RecognitionFailure:
    reason: str
    kind: FailureKind = FailureKind.RECOGNITION


PipelineOutcome = Union[NoDetections, Success, RecognitionFailure]


@dataclass(frozen=True, slots=True)
class ScanReport:
    """Everything the UI needs after one capture-to-speech run."""
    outcome: PipelineOutcome
    regions: List[Region] = field(default_factory=list)
    inference_time_ms: Optional[int] = None
    display_text: str = ""
    spoken_text: str = ""
    run_id: str = ""

    @property
    def inference_label(self) -> str:
        if self.inference_time_ms is None:
            return ""
        return f"{self.inference_time_ms}ms + OCR"
