from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import numpy as np
from PIL import Image, UnidentifiedImageError

from common.png_utils import is_png_bytes
from visreg.errors import DecodeError, OutOfBounds
from visreg.types import RGBA


def _freeze(array: np.ndarray) -> np.ndarray:
    frozen = np.array(array, dtype=np.uint8, copy=True, order="C")
    frozen.setflags(write=False)
    return frozen


@dataclass(frozen=True, eq=False)
class RasterBuffer:
    """Immutable RGBA pixel grid.

    Pixels are stored as a read-only ``(height, width, 4)`` uint8 array. Every
    transform builds a new buffer; nothing mutates ``data`` after construction.
    """

    data: np.ndarray

    def __post_init__(self) -> None:
        array = self.data
        if array.ndim != 3 or array.shape[2] != 4:
            raise ValueError(f"Expected a (height, width, 4) array, got shape {array.shape}")
        if array.shape[0] <= 0 or array.shape[1] <= 0:
            raise ValueError(f"Image must have positive width and height, got {array.shape[1]}x{array.shape[0]}")
        if array.dtype != np.uint8 or array.flags.writeable:
            object.__setattr__(self, "data", _freeze(array))

    @classmethod
    def from_array(cls, array: np.ndarray) -> RasterBuffer:
        array = np.asarray(array)
        if array.ndim == 3 and array.shape[2] == 3:
            alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
            array = np.concatenate([array.astype(np.uint8), alpha], axis=2)
        return cls(_freeze(array))

    @classmethod
    def from_pixels(cls, width: int, height: int, pixels: Sequence[Sequence[int]]) -> RasterBuffer:
        """Build from a row-major sequence of RGBA tuples."""
        if width <= 0 or height <= 0:
            raise ValueError(f"Image must have positive width and height, got {width}x{height}")
        if len(pixels) != width * height:
            raise ValueError(f"Expected {width * height} pixels for {width}x{height}, got {len(pixels)}")
        array = np.asarray(pixels, dtype=np.uint8).reshape(height, width, -1)
        return cls.from_array(array)

    @classmethod
    def from_image(cls, image: Image.Image) -> RasterBuffer:
        return cls(_freeze(np.asarray(image.convert("RGBA"))))

    @classmethod
    def from_bytes(cls, payload: bytes) -> RasterBuffer:
        if not is_png_bytes(payload):
            raise DecodeError("Image data is not a PNG stream.")
        try:
            with Image.open(io.BytesIO(payload)) as image:
                image.load()
                return cls.from_image(image)
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise DecodeError(f"Failed to decode PNG data: {exc}") from exc

    @classmethod
    def from_file(cls, path: Path) -> RasterBuffer:
        try:
            payload = path.read_bytes()
        except OSError as exc:
            raise DecodeError(f"Failed to read image {path}: {exc}", hint="Check the image path.") from exc
        return cls.from_bytes(payload)

    @classmethod
    def filled(cls, width: int, height: int, color: RGBA) -> RasterBuffer:
        if width <= 0 or height <= 0:
            raise ValueError(f"Image must have positive width and height, got {width}x{height}")
        array = np.empty((height, width, 4), dtype=np.uint8)
        array[:, :] = color
        return cls(_freeze(array))

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def pixel(self, x: int, y: int) -> RGBA:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise OutOfBounds(f"Pixel ({x}, {y}) is outside {self.width}x{self.height} image")
        r, g, b, a = self.data[y, x]
        return int(r), int(g), int(b), int(a)

    def pixels(self) -> list[RGBA]:
        return [(r, g, b, a) for r, g, b, a in self.data.reshape(-1, 4).tolist()]

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.array(self.data))

    def to_png_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self.to_image().save(buffer, format="PNG")
        return buffer.getvalue()

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.to_png_bytes())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RasterBuffer):
            return NotImplemented
        return self.data.shape == other.data.shape and bool(np.array_equal(self.data, other.data))

    def __hash__(self) -> int:
        return hash((self.data.shape, self.data.tobytes()))

    def __repr__(self) -> str:
        return f"RasterBuffer(width={self.width}, height={self.height})"
