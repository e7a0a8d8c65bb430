"""Image processing utilities: decoding, orientation and region extraction."""

import logging
from typing import List, Sequence

import cv2
import numpy as np

from ..core.entities import (
    CaptureFormat, CapturedImage, Crop, CropRect, Frame, ImagePlane, Region,
)
from ..core.exceptions import DecodeError
from .geometry import DEFAULT_PADDING_RATIO, clamp_rect, normalized_to_crop_rect

logger = logging.getLogger(__name__)

_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


def decode_jpeg(data: bytes) -> np.ndarray:
    """Decode a compressed raster (JPEG, PNG, ...) into a BGR array."""
    buffer = np.frombuffer(data, dtype=np.uint8)
    if buffer.size == 0:
        raise DecodeError("Empty image buffer")
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise DecodeError("Compressed image could not be decoded")
    return image


def yuv420_to_bgr(y: bytes, u: bytes, v: bytes, width: int, height: int,
                  chroma_pixel_stride: int = 1) -> np.ndarray:
    """Convert YUV_420_888 planes to BGR.

    The luma plane is followed by the V plane and then the U plane. With a
    chroma pixel stride of 2 the V buffer already interleaves V and U samples,
    giving NV21; with a stride of 1 the result is the planar YV12 layout.
    """
    expected = width * height * 3 // 2
    data = np.frombuffer(bytes(y) + bytes(v) + bytes(u), dtype=np.uint8)
    if width <= 0 or height <= 0 or width % 2 or height % 2:
        raise DecodeError(f"Invalid YUV_420_888 dimensions {width}x{height}")
    if data.size < expected:
        raise DecodeError(
            f"YUV_420_888 buffer too small: {data.size} bytes for {width}x{height}"
        )

    if chroma_pixel_stride == 2:
        code = cv2.COLOR_YUV2BGR_NV21
    elif chroma_pixel_stride == 1:
        code = cv2.COLOR_YUV2BGR_YV12
    else:
        raise DecodeError(f"Unsupported chroma pixel stride {chroma_pixel_stride}")

    yuv = data[:expected].reshape((height * 3 // 2, width))
    return cv2.cvtColor(yuv, code)


def apply_orientation(image: np.ndarray, rotation_degrees: int = 0,
                      mirror: bool = False) -> np.ndarray:
    """Rotate clockwise by ``rotation_degrees`` and optionally mirror horizontally."""
    rotation = rotation_degrees % 360
    if rotation:
        if rotation not in _ROTATIONS:
            raise DecodeError(f"Unsupported rotation {rotation_degrees} degrees")
        image = cv2.rotate(image, _ROTATIONS[rotation])
    if mirror:
        image = cv2.flip(image, 1)
    return image


def decode_capture(captured: CapturedImage, mirror: bool = False) -> Frame:
    """Turn one capture into an orientation-corrected, read-only Frame."""
    try:
        fmt = CaptureFormat(captured.format)
    except ValueError:
        raise DecodeError(f"Image format not supported: {captured.format}") from None

    if fmt is CaptureFormat.JPEG:
        image = decode_jpeg(_plane_bytes(captured.planes[0]))
    elif fmt is CaptureFormat.YUV_420_888:
        if len(captured.planes) != 3:
            raise DecodeError(f"YUV_420_888 requires 3 planes, got {len(captured.planes)}")
        y_plane, u_plane, v_plane = captured.planes
        width, height = captured.width, captured.height
        chroma_stride = getattr(u_plane, 'pixel_stride', 1)
        chroma_row = (width // 2) * chroma_stride
        image = yuv420_to_bgr(
            _packed_rows(y_plane, width, height),
            _packed_rows(u_plane, chroma_row, height // 2),
            _packed_rows(v_plane, chroma_row, height // 2),
            width, height,
            chroma_pixel_stride=chroma_stride,
        )
    else:
        image = captured.planes[0] if captured.planes else None
        if not isinstance(image, np.ndarray) or image.ndim != 3 or image.shape[2] != 3:
            raise DecodeError("BGR capture must carry an HxWx3 array")

    frame = Frame.from_array(apply_orientation(image, captured.rotation_degrees, mirror))
    logger.debug(f"Decoded {fmt.value} capture to {frame.width}x{frame.height} frame")
    return frame


def _plane_bytes(plane) -> bytes:
    if isinstance(plane, ImagePlane):
        return plane.buffer
    if isinstance(plane, np.ndarray):
        return plane.tobytes()
    return bytes(plane)


def _packed_rows(plane, row_bytes: int, rows: int) -> bytes:
    """Plane bytes with the padding past ``row_bytes`` dropped from every row."""
    data = _plane_bytes(plane)
    row_stride = getattr(plane, 'row_stride', None)
    if not row_stride or row_stride <= row_bytes:
        return data
    return b"".join(data[row * row_stride:row * row_stride + row_bytes] for row in range(rows))


def extract_region(frame: Frame, rect: CropRect) -> np.ndarray:
    """Copy the pixels under ``rect`` out of the frame.

    The rectangle is clamped against the frame again to absorb rounding, and
    the returned array never shares memory with the frame.
    """
    final = clamp_rect(rect, frame.width, frame.height)
    if final.width <= 0 or final.height <= 0:
        final = CropRect(0, 0, min(1, frame.width), min(1, frame.height))
    return frame.image[final.y:final.bottom, final.x:final.right].copy()


def extract_crops(frame: Frame, regions: Sequence[Region],
                  padding_ratio: float = DEFAULT_PADDING_RATIO) -> List[Crop]:
    """One crop per region, in region order."""
    crops = []
    for index, region in enumerate(regions):
        rect = normalized_to_crop_rect(region, frame.width, frame.height, padding_ratio)
        crops.append(Crop(index=index, rect=rect, image=extract_region(frame, rect)))
    return crops
