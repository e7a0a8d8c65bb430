"""Text recognition and the per-region fan-out/fan-in."""
from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future
from typing import List, Optional, Sequence

import cv2
import numpy as np
import pytesseract
from PIL import Image

from ..core.entities import Crop, RecognitionResult
from ..core.exceptions import RecognitionError, RecognitionTimeoutError
from ..core.threading_manager import join_all

logger = logging.getLogger(__name__)


class TextRecognizer(ABC):
    """Extracts text from one cropped BGR image."""

    @abstractmethod
    def recognize(self, image: np.ndarray) -> str:
        """Return the recognized text, possibly empty. Raise on failure."""


class TesseractRecognizer(TextRecognizer):
    """Tesseract OCR through pytesseract."""

    def __init__(self, language: str = "eng", tesseract_config: str = "--psm 6",
                 binarize: bool = False):
        self.language = language
        self.tesseract_config = tesseract_config
        self.binarize = binarize

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image
        if self.binarize:
            _, gray = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        return gray

    def recognize(self, image: np.ndarray) -> str:
        return pytesseract.image_to_string(
            Image.fromarray(self.preprocess(image)), lang=self.language, config=self.tesseract_config
        )


class RecognitionService:
    """Dispatches one recognition request per crop and joins them.

    The join is all-or-nothing: the combined future resolves with one
    RecognitionResult per crop in crop order, or fails with the first
    RecognitionError raised by any request, or with RecognitionTimeoutError
    when ``timeout_s`` elapses first.
    """

    def __init__(self, recognizer: TextRecognizer, executor: Executor,
                 timeout_s: Optional[float] = None):
        self.recognizer = recognizer
        self.executor = executor
        self.timeout_s = timeout_s

    def _recognize_one(self, crop: Crop) -> RecognitionResult:
        try:
            text = self.recognizer.recognize(crop.image)
        except Exception as e:
            raise RecognitionError(f"Region {crop.index}: {e}") from e
        if text is None:
            text = ""
        logger.debug(f"Region {crop.index} recognized {len(text)} character(s)")
        return RecognitionResult(index=crop.index, text=text)

    def process(self, crop: Crop) -> Future:
        """Submit a single crop. The returned future holds a RecognitionResult."""
        return self.executor.submit(self._recognize_one, crop)

    def recognize_all(self, crops: Sequence[Crop]) -> Future:
        """Fan out over ``crops`` and return the joined future."""
        futures: List[Future] = [self.process(crop) for crop in crops]
        logger.info(f"Dispatched {len(futures)} recognition request(s)")
        timeout_s = self.timeout_s
        return join_all(
            futures,
            timeout=timeout_s,
            timeout_exception=lambda: RecognitionTimeoutError(
                f"Text recognition timed out after {timeout_s}s"
            ),
        )
