from __future__ import annotations

import numpy as np
import pytest

from visreg.errors import InvalidRegion
from visreg.mask import DEFAULT_MASK_COLOR, apply_masks
from visreg.raster import RasterBuffer
from visreg.region import extract, full_bounds
from visreg.types import Rectangle


def _gradient(width: int = 6, height: int = 5) -> RasterBuffer:
    array = np.zeros((height, width, 4), dtype=np.uint8)
    array[:, :, 0] = np.arange(width, dtype=np.uint8)[None, :] * 10
    array[:, :, 1] = np.arange(height, dtype=np.uint8)[:, None] * 10
    array[:, :, 3] = 255
    return RasterBuffer.from_array(array)


def test_extract_crops_to_rectangle() -> None:
    cropped = extract(_gradient(), Rectangle(2, 1, 3, 2))

    assert cropped.size == (3, 2)
    assert cropped.pixel(0, 0) == (20, 10, 0, 255)
    assert cropped.pixel(2, 1) == (40, 20, 0, 255)


def test_extract_is_idempotent_on_full_bounds() -> None:
    once = extract(_gradient(), Rectangle(1, 1, 4, 3))
    assert extract(once, full_bounds(once)) == once


def test_extract_leaves_source_untouched() -> None:
    source = _gradient()
    before = source.pixels()
    extract(source, Rectangle(0, 0, 2, 2))
    assert source.pixels() == before


@pytest.mark.parametrize(
    "rect",
    [Rectangle(5, 0, 2, 1), Rectangle(0, 4, 1, 2), Rectangle(0, 0, 7, 5), Rectangle(1, 1, 0, 2)],
)
def test_extract_rejects_regions_outside_bounds(rect: Rectangle) -> None:
    with pytest.raises(InvalidRegion) as excinfo:
        extract(_gradient(), rect)
    assert excinfo.value.code == "E1002_INVALID_REGION"


def test_rectangle_rejects_negative_values() -> None:
    with pytest.raises(InvalidRegion):
        Rectangle(-1, 0, 2, 2)


@pytest.mark.parametrize("values", [[0.7, 0, 10, 5], [0, 0, "2.5", 5], [0, True, 1, 1], [0, 0, None, 1]])
def test_rectangle_from_sequence_rejects_fractional_values(values: list[object]) -> None:
    with pytest.raises(InvalidRegion):
        Rectangle.from_sequence(values)


def test_rectangle_from_sequence_accepts_whole_numbers() -> None:
    assert Rectangle.from_sequence([1.0, 2, "3", " 4"]) == Rectangle(1, 2, 3, 4)


def test_rectangle_from_browser_box_covers_fractional_edges() -> None:
    rect = Rectangle.from_box({"x": 10.5, "y": 3.0, "width": 20.2, "height": 4.9})
    assert rect == Rectangle(10, 3, 21, 5)


def test_mask_fills_rectangles() -> None:
    source = _gradient()
    masked = apply_masks(source, [Rectangle(0, 0, 2, 2), Rectangle(1, 1, 2, 2)])

    assert masked.pixel(0, 0) == DEFAULT_MASK_COLOR
    assert masked.pixel(2, 2) == DEFAULT_MASK_COLOR
    assert masked.pixel(3, 3) == source.pixel(3, 3)
    assert source.pixel(0, 0) == (0, 0, 0, 255)
    assert source.pixel(2, 2) == (20, 20, 0, 255)


def test_mask_with_custom_color() -> None:
    masked = apply_masks(_gradient(), [Rectangle(5, 4, 1, 1)], (1, 2, 3, 255))
    assert masked.pixel(5, 4) == (1, 2, 3, 255)


def test_mask_validates_every_rectangle_first() -> None:
    with pytest.raises(InvalidRegion):
        apply_masks(_gradient(), [Rectangle(0, 0, 1, 1), Rectangle(4, 4, 3, 3)])


def test_mask_without_rectangles_returns_same_pixels() -> None:
    source = _gradient()
    assert apply_masks(source, []) == source
