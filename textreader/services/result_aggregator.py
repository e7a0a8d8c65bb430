"""Merge per-region text and choose what to show and say for an outcome."""
from typing import Sequence, Tuple
from ..core.entities import (
    FailureKind, NoDetections, PipelineOutcome, RecognitionFailure,
    RecognitionResult, Success,
)

SEPARATOR = ". "

NO_DETECTIONS_DISPLAY = "No text or object detected."
NO_DETECTIONS_SPOKEN = "No text or object detected in the image. Please reposition the camera and try again."
NO_TEXT_DISPLAY = "Text blocks detected, but no characters recognized."
NO_TEXT_SPOKEN = "Text blocks detected, but no readable text found."
CAPTURE_STARTED_SPOKEN = "Capturing image and scanning for text. Please wait."

FAILURE_SPOKEN = {
    FailureKind.CAPTURE: "Scan failed. Camera error.",
    FailureKind.DECODE: "Scan failed. Image format error.",
    FailureKind.DETECTION: "Scan failed. Detection error.",
    FailureKind.RECOGNITION: "Text recognition failed. Please try again.",
    FailureKind.TIMEOUT: "Text recognition timed out. Please try again.",
}


def merge_texts(results: Sequence[RecognitionResult]) -> str:
    """Join trimmed, non-empty texts in input order with ". ".

    Every kept text is followed by the separator and the whole string is
    trimmed, so a single "STOP" becomes "STOP." and all-empty input gives "".
    """
    merged = []
    for result in results:
        text = result.text.strip()
        if text:
            merged.append(text + SEPARATOR)
    return "".join(merged).strip()


def outcome_messages(outcome: PipelineOutcome) -> Tuple[str, str]:
    """Return ``(display_text, spoken_text)`` for a terminal outcome."""
    if isinstance(outcome, NoDetections):
        return NO_DETECTIONS_DISPLAY, NO_DETECTIONS_SPOKEN
    if isinstance(outcome, Success):
        if outcome.has_text:
            return outcome.merged_text, outcome.merged_text
        return NO_TEXT_DISPLAY, NO_TEXT_SPOKEN
    if isinstance(outcome, RecognitionFailure):
        spoken = FAILURE_SPOKEN.get(outcome.kind, FAILURE_SPOKEN[FailureKind.RECOGNITION])
        if outcome.kind in (FailureKind.RECOGNITION, FailureKind.TIMEOUT):
            return f"Error: {outcome.reason}", spoken
        return spoken, spoken
    raise TypeError(f"Unknown pipeline outcome: {outcome!r}")
