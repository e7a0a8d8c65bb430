"""Default configuration values."""

from typing import Any, Dict

DEFAULT_CONFIG: Dict[str, Any] = {
    # Camera
    "camera_index": 0,
    "camera_width": 1280,
    "camera_height": 960,  # 4:3 still capture
    "camera_rotation_degrees": 0,
    "camera_mirror": False,  # front-facing cameras

    # Detection
    "model_path": "yolo11n.pt",
    "detection_confidence_threshold": 0.5,  # 0.0 to 1.0
    "detection_iou_threshold": 0.45,  # 0.0 to 1.0

    # Cropping and recognition
    "crop_padding_ratio": 0.02,  # fraction of image size added on every side
    "recognition_max_workers": 4,
    "recognition_timeout_s": 10.0,
    "tesseract_language": "eng",
    "tesseract_config": "--psm 6",
    "ocr_binarize": False,

    # Speech
    "speech_language": "en_US",
    "speech_rate": 150,
    "announce_capture_start": False,

    # Debug and Logging Settings
    "log_level": "INFO",
    "log_dir": "logs",
    "enable_file_logging": False,
    "structured_logging": False,
}

ENV_PREFIX = "TEXTREADER_"
