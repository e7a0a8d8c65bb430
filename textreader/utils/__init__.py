"""Utility functions package."""

from .geometry import normalized_to_crop_rect, clamp_rect, region_to_canvas_xyxy
from .image_utils import (
    decode_capture, decode_jpeg, yuv420_to_bgr, apply_orientation,
    extract_region, extract_crops
)

__all__ = [
    "normalized_to_crop_rect", "clamp_rect", "region_to_canvas_xyxy",
    "decode_capture", "decode_jpeg", "yuv420_to_bgr", "apply_orientation",
    "extract_region", "extract_crops"
]
