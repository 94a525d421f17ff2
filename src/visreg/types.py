from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

from visreg.errors import InvalidRegion

RGBA = tuple[int, int, int, int]


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned pixel rectangle.

    Attributes:
        x: Left edge, in pixels
        y: Top edge, in pixels
        width: Width in pixels
        height: Height in pixels
    """

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidRegion(f"Rectangle {name} must be an integer, got {value!r}")
            if value < 0:
                raise InvalidRegion(f"Rectangle {name} must be non-negative, got {value}")

    @property
    def x2(self) -> int:
        return self.x + self.width

    @property
    def y2(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def fits_within(self, width: int, height: int) -> bool:
        return self.x2 <= width and self.y2 <= height

    @classmethod
    def from_sequence(cls, values: Sequence[Any]) -> Rectangle:
        """Build from ``[x, y, width, height]``; fractional values are rejected."""
        if len(values) != 4:
            raise InvalidRegion(f"Rectangle needs 4 values [x, y, width, height], got {list(values)}")
        return cls(*(_whole_pixels(value) for value in values))

    @classmethod
    def from_box(cls, box: dict[str, float]) -> Rectangle:
        """Build from a browser bounding box, snapping to the enclosing pixel grid."""
        left = math.floor(box["x"])
        top = math.floor(box["y"])
        right = math.ceil(box["x"] + box["width"])
        bottom = math.ceil(box["y"] + box["height"])
        return cls(left, top, right - left, bottom - top)

    def to_list(self) -> list[int]:
        return [self.x, self.y, self.width, self.height]


def _whole_pixels(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidRegion(f"Rectangle values must be whole pixels, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError as exc:
            raise InvalidRegion(f"Rectangle values must be whole pixels, got {value!r}") from exc
    raise InvalidRegion(f"Rectangle values must be whole pixels, got {value!r}")
