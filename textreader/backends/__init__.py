"""Detector backend implementations."""

from .base_backend import RegionBackend
from .yolo_backend import YoloBackend

__all__ = ["RegionBackend", "YoloBackend"]
