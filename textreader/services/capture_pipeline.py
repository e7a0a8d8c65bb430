"""Capture-to-speech pipeline controller.

One scan runs through ``IDLE -> CAPTURING -> DETECTING -> RECOGNIZING -> DONE``
and back to ``IDLE``. State only changes on the main thread (through the
dispatcher); capture decoding runs on the capture worker context, detection
and crop extraction on the processing context, and OCR on the recognition
pool. Every path ends in ``_finish``, which speaks exactly once, reports the
outcome and resets to ``IDLE``.
"""
from __future__ import annotations
import functools
import logging
import time
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..core.entities import (
    FailureKind, Frame, NoDetections, PipelineOutcome, PipelineState,
    RecognitionFailure, Region, ScanReport, Success,
)
from ..core.exceptions import RecognitionTimeoutError
from ..core.logging_config import RunContext, new_run_id
from ..core.threading_manager import MainThreadDispatcher
from ..utils.geometry import DEFAULT_PADDING_RATIO
from ..utils.image_utils import decode_capture, extract_crops
from .result_aggregator import CAPTURE_STARTED_SPOKEN, merge_texts, outcome_messages

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[ScanReport], None]


@dataclass(eq=False)
class _ScanRun:
    run_id: str
    started_at: float = field(default_factory=time.monotonic)


class _RunDetectorListener:
    """Routes detector callbacks for one run back to the main thread."""

    def __init__(self, pipeline: "CapturePipeline", run: _ScanRun, frame: Frame):
        self._pipeline = pipeline
        self._run = run
        self._frame = frame

    def on_detect(self, regions: List[Region], inference_time_ms: int) -> None:
        self._pipeline.dispatcher.post(
            self._pipeline._on_regions_ready, self._run, self._frame, list(regions), inference_time_ms
        )

    def on_empty_detect(self) -> None:
        self._pipeline.dispatcher.post(self._pipeline._finish, self._run, NoDetections())


class CapturePipeline:
    """Sequences capture, detection, recognition, aggregation and speech."""

    def __init__(self, capture_source, detection_service, recognition_service, notifier,
                 dispatcher: MainThreadDispatcher, capture_executor: Executor,
                 processing_executor: Executor, config=None,
                 on_outcome: Optional[OutcomeCallback] = None):
        self.capture_source = capture_source
        self.detection_service = detection_service
        self.recognition_service = recognition_service
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.capture_executor = capture_executor
        self.processing_executor = processing_executor
        self.on_outcome = on_outcome

        get = config.get if config is not None else (lambda key, default=None: default)
        self.padding_ratio = get('crop_padding_ratio', DEFAULT_PADDING_RATIO)
        self.mirror = bool(get('camera_mirror', False))
        self.announce_capture_start = bool(get('announce_capture_start', False))

        self._state = PipelineState.IDLE
        self._run: Optional[_ScanRun] = None

    @property
    def state(self) -> PipelineState:
        return self._state

    def is_idle(self) -> bool:
        return self._state is PipelineState.IDLE

    # -- main thread ---------------------------------------------------------

    def trigger_capture(self) -> bool:
        """Start a scan. Ignored (returns False) unless the pipeline is idle."""
        if self._state is not PipelineState.IDLE:
            logger.debug(f"Scan trigger ignored in state {self._state.value}")
            return False

        run = _ScanRun(run_id=new_run_id())
        self._run = run
        self._state = PipelineState.CAPTURING

        with RunContext(run.run_id):
            logger.info("Scan started")
            if self.announce_capture_start:
                self.notifier.notify(CAPTURE_STARTED_SPOKEN)
            try:
                future = self.capture_source.capture()
            except Exception as e:
                logger.error(f"Photo capture failed: {e}", exc_info=True)
                self._finish(run, RecognitionFailure(f"Camera error: {e}", FailureKind.CAPTURE))
                return True

        future.add_done_callback(functools.partial(self._on_capture_done, run))
        return True

    def _is_current(self, run: _ScanRun) -> bool:
        if run is not self._run:
            logger.warning(f"Dropping stale completion for run {run.run_id}")
            return False
        return True

    def _on_frame_ready(self, run: _ScanRun, frame: Frame) -> None:
        with RunContext(run.run_id):
            if not self._is_current(run):
                return
            self._state = PipelineState.DETECTING
            try:
                self.processing_executor.submit(self._detect, run, frame)
            except Exception as e:
                logger.error(f"Could not schedule detection: {e}", exc_info=True)
                self._finish(run, RecognitionFailure(f"Detection error: {e}", FailureKind.DETECTION))

    def _on_regions_ready(self, run: _ScanRun, frame: Frame, regions: List[Region],
                          inference_time_ms: int) -> None:
        with RunContext(run.run_id):
            if not self._is_current(run):
                return
            self._state = PipelineState.RECOGNIZING
            try:
                self.processing_executor.submit(self._recognize, run, frame, regions, inference_time_ms)
            except Exception as e:
                logger.error(f"Could not schedule recognition: {e}", exc_info=True)
                self._finish(run, RecognitionFailure(str(e), FailureKind.RECOGNITION),
                             regions, inference_time_ms)

    def _finish(self, run: _ScanRun, outcome: PipelineOutcome,
                regions: Optional[List[Region]] = None,
                inference_time_ms: Optional[int] = None) -> None:
        with RunContext(run.run_id):
            if not self._is_current(run):
                return
            self._state = PipelineState.DONE
            try:
                display_text, spoken_text = outcome_messages(outcome)
                report = ScanReport(
                    outcome=outcome,
                    regions=list(regions or []),
                    inference_time_ms=inference_time_ms,
                    display_text=display_text,
                    spoken_text=spoken_text,
                    run_id=run.run_id,
                )
                elapsed_ms = int((time.monotonic() - run.started_at) * 1000)
                logger.info(f"Scan finished with {type(outcome).__name__} in {elapsed_ms}ms")
                self.notifier.notify(spoken_text)
                if self.on_outcome is not None:
                    try:
                        self.on_outcome(report)
                    except Exception as e:
                        logger.exception(f"Outcome listener failed: {e}")
            finally:
                self._run = None
                self._state = PipelineState.IDLE

    # -- worker threads ------------------------------------------------------

    def _fail(self, run: _ScanRun, outcome: RecognitionFailure,
              regions: Optional[List[Region]] = None,
              inference_time_ms: Optional[int] = None) -> None:
        self.dispatcher.post(self._finish, run, outcome, regions, inference_time_ms)

    def _on_capture_done(self, run: _ScanRun, future: Future) -> None:
        try:
            self.capture_executor.submit(self._decode, run, future)
        except Exception as e:
            logger.error(f"Could not schedule frame decoding: {e}", exc_info=True)
            self._fail(run, RecognitionFailure(f"Camera error: {e}", FailureKind.CAPTURE))

    def _decode(self, run: _ScanRun, future: Future) -> None:
        """Capture context: unwrap the capture and build the Frame."""
        with RunContext(run.run_id):
            try:
                captured = future.result()
            except Exception as e:
                logger.error(f"Photo capture failed: {e}", exc_info=True)
                self._fail(run, RecognitionFailure(f"Camera error: {e}", FailureKind.CAPTURE))
                return

            try:
                frame = decode_capture(captured, mirror=self.mirror)
            except Exception as e:
                logger.error(f"Failed to decode captured image: {e}", exc_info=True)
                self._fail(run, RecognitionFailure(f"Image format error: {e}", FailureKind.DECODE))
                return

            self.dispatcher.post(self._on_frame_ready, run, frame)

    def _detect(self, run: _ScanRun, frame: Frame) -> None:
        """Processing context: run the detector."""
        with RunContext(run.run_id):
            try:
                self.detection_service.detect(frame, _RunDetectorListener(self, run, frame))
            except Exception as e:
                logger.error(f"Detection failed: {e}", exc_info=True)
                self._fail(run, RecognitionFailure(f"Detection error: {e}", FailureKind.DETECTION))

    def _recognize(self, run: _ScanRun, frame: Frame, regions: List[Region],
                   inference_time_ms: int) -> None:
        """Processing context: crop every region and fan out recognition."""
        with RunContext(run.run_id):
            try:
                crops = extract_crops(frame, regions, self.padding_ratio)
                joined = self.recognition_service.recognize_all(crops)
            except Exception as e:
                logger.error(f"Region extraction failed: {e}", exc_info=True)
                self._fail(run, RecognitionFailure(str(e), FailureKind.RECOGNITION),
                           regions, inference_time_ms)
                return

        joined.add_done_callback(
            functools.partial(self._on_recognition_done, run, regions, inference_time_ms)
        )

    def _on_recognition_done(self, run: _ScanRun, regions: List[Region],
                             inference_time_ms: int, joined: Future) -> None:
        with RunContext(run.run_id):
            try:
                results = joined.result()
            except RecognitionTimeoutError as e:
                logger.error(f"Text recognition timed out: {e}")
                outcome = RecognitionFailure(str(e), FailureKind.TIMEOUT)
            except Exception as e:
                logger.error(f"Text recognition failed for one or more regions: {e}", exc_info=True)
                outcome = RecognitionFailure(str(e), FailureKind.RECOGNITION)
            else:
                outcome = Success(merge_texts(results))

            self.dispatcher.post(self._finish, run, outcome, regions, inference_time_ms)
