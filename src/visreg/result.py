from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from visreg.raster import RasterBuffer


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of comparing a candidate image against its baseline.

    Attributes:
        match: True when ``difference_percentage`` is within ``tolerance``
            and both images have the same size; a size mismatch never matches
            whatever the tolerance
        difference_percentage: Share of differing pixels, 0-100
        diff_image: Candidate with differing pixels highlighted, or None when
            nothing differs and no visualization was requested
        tolerance: Maximum difference percentage accepted as a match
        differing_pixels: Number of pixels classified as different
        total_pixels: Number of pixels considered
        baseline_size: (width, height) of the baseline
        candidate_size: (width, height) of the candidate
    """

    match: bool
    difference_percentage: float
    diff_image: RasterBuffer | None
    tolerance: float
    differing_pixels: int
    total_pixels: int
    baseline_size: tuple[int, int]
    candidate_size: tuple[int, int]

    @property
    def size_mismatch(self) -> bool:
        return self.baseline_size != self.candidate_size

    def to_dict(self) -> dict[str, Any]:
        return {
            "match": self.match,
            "difference_percentage": self.difference_percentage,
            "tolerance": self.tolerance,
            "differing_pixels": self.differing_pixels,
            "total_pixels": self.total_pixels,
            "size_mismatch": self.size_mismatch,
            "baseline_size": list(self.baseline_size),
            "candidate_size": list(self.candidate_size),
            "has_diff_image": self.diff_image is not None,
        }
