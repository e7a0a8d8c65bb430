"""
Camera-to-speech text reader: capture a still, find text regions, read them aloud.
"""

__version__ = "1.0.0"

from .config.settings import Config, load_config, save_config
from .core.entities import (
    Frame, Region, Crop, RecognitionResult, PipelineState,
    NoDetections, Success, RecognitionFailure, ScanReport
)

__all__ = [
    "Config", "load_config", "save_config",
    "Frame", "Region", "Crop", "RecognitionResult", "PipelineState",
    "NoDetections", "Success", "RecognitionFailure", "ScanReport"
]
