"""visreg library package."""

from .diff import compare_buffers
from .errors import (
    BaselineMissing,
    CaptureUnavailable,
    ElementNotFound,
    InvalidRegion,
    NavigationError,
    OutOfBounds,
    VisRegError,
)
from .mask import apply_masks
from .orchestrator import CompareOptions, compare, compare_files, create_baseline
from .raster import RasterBuffer
from .region import extract
from .result import ComparisonResult
from .types import Rectangle

__all__ = [
    "BaselineMissing",
    "CaptureUnavailable",
    "CompareOptions",
    "ComparisonResult",
    "ElementNotFound",
    "InvalidRegion",
    "NavigationError",
    "OutOfBounds",
    "RasterBuffer",
    "Rectangle",
    "VisRegError",
    "apply_masks",
    "compare",
    "compare_buffers",
    "compare_files",
    "create_baseline",
    "extract",
]
