from __future__ import annotations

from typing import Iterable

import numpy as np

from visreg.raster import RasterBuffer
from visreg.region import check_region
from visreg.types import RGBA, Rectangle

DEFAULT_MASK_COLOR: RGBA = (0, 0, 0, 255)


def apply_masks(
    buffer: RasterBuffer,
    rects: Iterable[Rectangle],
    fill_color: RGBA = DEFAULT_MASK_COLOR,
) -> RasterBuffer:
    """Return a copy of ``buffer`` with every rectangle painted ``fill_color``.

    Rectangles are validated before any pixel is written, so an invalid entry
    leaves no partially masked result behind. Callers comparing two images must
    mask both with the same rectangles.
    """
    rects = list(rects)
    for rect in rects:
        check_region(buffer, rect)
    if not rects:
        return buffer
    array = np.array(buffer.data)
    for rect in rects:
        array[rect.y : rect.y2, rect.x : rect.x2] = fill_color
    return RasterBuffer(array)
