"""Main entry point for the Text Reader desktop application."""

import tkinter as tk
import logging
import sys

from .config.settings import Config, load_config
from .core.exceptions import ConfigError
from .core.logging_config import configure_logging
from .core.threading_manager import MainThreadDispatcher, TkDispatcher, WorkerContexts
from .backends.yolo_backend import YoloBackend
from .services.capture_pipeline import CapturePipeline
from .services.detection_service import DetectionService
from .services.recognition_service import RecognitionService, TesseractRecognizer
from .services.speech_service import Pyttsx3SpeechEngine, SpeechNotifier
from .services.webcam_service import WebcamService
from .ui.main_window import ScanWindow

logger = logging.getLogger(__name__)


def build_pipeline(config: Config, dispatcher: MainThreadDispatcher, workers: WorkerContexts,
                   speech_engine) -> CapturePipeline:
    """Wire the production collaborators into a CapturePipeline."""
    capture_executor = workers.get("capture")
    processing_executor = workers.get("processing")
    recognition_executor = workers.get("recognition", max_workers=config.recognition_max_workers)

    camera = WebcamService(
        capture_executor,
        camera_index=config.camera_index,
        width=config.camera_width,
        height=config.camera_height,
        rotation_degrees=config.camera_rotation_degrees,
    )
    detection_service = DetectionService(YoloBackend(config), config)
    detection_service.load()

    recognizer = TesseractRecognizer(
        language=config.tesseract_language,
        tesseract_config=config.tesseract_config,
        binarize=config.ocr_binarize,
    )
    recognition_service = RecognitionService(
        recognizer, recognition_executor, timeout_s=config.recognition_timeout_s
    )

    return CapturePipeline(
        capture_source=camera,
        detection_service=detection_service,
        recognition_service=recognition_service,
        notifier=SpeechNotifier(speech_engine),
        dispatcher=dispatcher,
        capture_executor=capture_executor,
        processing_executor=processing_executor,
        config=config,
    )


def main(config_path: str = "config.json") -> int:
    """Application entry point."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error(f"Invalid configuration in '{config_path}': {e}")
        return 2
    configure_logging(
        log_level=config.log_level,
        log_dir=config.log_dir,
        enable_file_logging=config.enable_file_logging,
        structured_logging=config.structured_logging,
    )

    root = tk.Tk()
    dispatcher = TkDispatcher(root)
    workers = WorkerContexts()
    speech_engine = Pyttsx3SpeechEngine(language=config.speech_language, rate=config.speech_rate)

    try:
        pipeline = build_pipeline(config, dispatcher, workers, speech_engine)
    except Exception as e:
        logger.error(f"Failed to start application: {e}", exc_info=True)
        workers.shutdown()
        dispatcher.shutdown()
        root.destroy()
        return 1

    ScanWindow(root, pipeline)
    speech_engine.start(lambda status: dispatcher.post(pipeline.notifier.on_engine_status, status))
    pipeline.capture_source.open()

    def on_closing():
        dispatcher.shutdown()
        pipeline.capture_source.close()
        speech_engine.shutdown()
        workers.shutdown()
        pipeline.detection_service.unload()
        root.destroy()

    root.protocol("WM_DELETE_WINDOW", on_closing)
    logger.info("Text reader started")
    root.mainloop()
    return 0


if __name__ == "__main__":
    sys.exit(main(*sys.argv[1:2]))
