from __future__ import annotations

from visreg.errors import InvalidRegion
from visreg.raster import RasterBuffer
from visreg.types import Rectangle


def full_bounds(buffer: RasterBuffer) -> Rectangle:
    return Rectangle(0, 0, buffer.width, buffer.height)


def check_region(buffer: RasterBuffer, rect: Rectangle) -> None:
    if not rect.fits_within(buffer.width, buffer.height):
        raise InvalidRegion(
            f"Region {rect.to_list()} exceeds image bounds {buffer.width}x{buffer.height}"
        )


def extract(buffer: RasterBuffer, rect: Rectangle) -> RasterBuffer:
    """Crop ``buffer`` to ``rect``; the rectangle must be non-empty and in bounds."""
    if rect.area == 0:
        raise InvalidRegion(f"Region {rect.to_list()} is empty")
    check_region(buffer, rect)
    return RasterBuffer(buffer.data[rect.y : rect.y2, rect.x : rect.x2])
