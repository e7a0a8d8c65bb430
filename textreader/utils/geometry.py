"""Geometry and bounding box utilities."""

from ..core.entities import CropRect, Region

DEFAULT_PADDING_RATIO = 0.02


def normalized_to_crop_rect(region: Region, img_w: int, img_h: int,
                            padding_ratio: float = DEFAULT_PADDING_RATIO) -> CropRect:
    """Convert a normalized region into a padded pixel rectangle.

    Padding is ``padding_ratio`` of the image size on every side. Edges are
    clamped to the image and truncated to integers. A rectangle that collapses
    to zero width or height becomes a 1x1 rectangle at (0, 0) so each region
    keeps exactly one crop.
    """
    pad_x = img_w * padding_ratio
    pad_y = img_h * padding_ratio

    left = max(region.x1 * img_w - pad_x, 0.0)
    top = max(region.y1 * img_h - pad_y, 0.0)
    right = min(region.x2 * img_w + pad_x, float(img_w))
    bottom = min(region.y2 * img_h + pad_y, float(img_h))

    x = int(left)
    y = int(top)
    width = int(right - left)
    height = int(bottom - top)

    if width <= 0 or height <= 0:
        return CropRect(0, 0, 1, 1)
    return CropRect(x, y, width, height)


def clamp_rect(rect: CropRect, img_w: int, img_h: int) -> CropRect:
    """Clamp a pixel rectangle so it lies inside [0, img_w] x [0, img_h]."""
    x = min(max(rect.x, 0), img_w)
    y = min(max(rect.y, 0), img_h)
    width = min(rect.width, img_w - x)
    height = min(rect.height, img_h - y)
    return CropRect(x, y, width, height)


def region_to_canvas_xyxy(region: Region, canvas_w: int, canvas_h: int):
    """Scale a normalized region to canvas pixels for overlay drawing."""
    return [
        int(region.x1 * canvas_w),
        int(region.y1 * canvas_h),
        int(region.x2 * canvas_w),
        int(region.y2 * canvas_h),
    ]
