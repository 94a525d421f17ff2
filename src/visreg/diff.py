from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from visreg.raster import RasterBuffer
from visreg.result import ComparisonResult
from visreg.types import RGBA

logger = logging.getLogger(__name__)

# Summed |dR|+|dG|+|dB| at or below this is treated as rendering noise.
PIXEL_NOISE_THRESHOLD = 12
HIGHLIGHT_COLOR: RGBA = (255, 0, 255, 255)
# Row bands smaller than this are not worth a worker.
MIN_ROWS_PER_BAND = 64


def _validate_tolerance(tolerance: float) -> float:
    try:
        value = float(tolerance)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Tolerance must be a number, got {tolerance!r}") from exc
    if not 0.0 <= value <= 100.0:
        raise ValueError(f"Tolerance must be between 0 and 100, got {value}")
    return value


def _band_mask(baseline: np.ndarray, candidate: np.ndarray) -> np.ndarray:
    delta = np.abs(baseline[:, :, :3].astype(np.int16) - candidate[:, :, :3].astype(np.int16))
    return delta.sum(axis=2) > PIXEL_NOISE_THRESHOLD


def difference_mask(baseline: np.ndarray, candidate: np.ndarray, workers: int = 1) -> np.ndarray:
    """Boolean (height, width) mask of pixels whose RGB delta exceeds the noise threshold.

    With ``workers > 1`` the rows are split into bands compared concurrently;
    each band is independent, so the stitched mask equals the serial one.
    """
    height = baseline.shape[0]
    bands = min(workers, max(height // MIN_ROWS_PER_BAND, 1))
    if bands <= 1:
        return _band_mask(baseline, candidate)
    bounds = np.linspace(0, height, bands + 1, dtype=int)
    spans = list(zip(bounds[:-1], bounds[1:]))
    with ThreadPoolExecutor(max_workers=bands) as pool:
        parts = list(
            pool.map(lambda span: _band_mask(baseline[span[0] : span[1]], candidate[span[0] : span[1]]), spans)
        )
    return np.concatenate(parts, axis=0)


def _highlight(base: np.ndarray, mask: np.ndarray) -> RasterBuffer:
    overlay = np.array(base)
    overlay[mask] = HIGHLIGHT_COLOR
    return RasterBuffer(overlay)


def _mismatched_sizes(
    baseline: RasterBuffer,
    candidate: RasterBuffer,
    tolerance: float,
) -> ComparisonResult:
    width = max(baseline.width, candidate.width)
    height = max(baseline.height, candidate.height)
    overlay = np.empty((height, width, 4), dtype=np.uint8)
    overlay[:, :] = HIGHLIGHT_COLOR
    common_w = min(baseline.width, candidate.width)
    common_h = min(baseline.height, candidate.height)
    overlap_base = baseline.data[:common_h, :common_w]
    overlap_cand = candidate.data[:common_h, :common_w]
    overlay[:common_h, :common_w] = overlap_cand
    overlay[:common_h, :common_w][_band_mask(overlap_base, overlap_cand)] = HIGHLIGHT_COLOR
    logger.debug(
        "size mismatch: baseline=%sx%s candidate=%sx%s",
        baseline.width,
        baseline.height,
        candidate.width,
        candidate.height,
    )
    return ComparisonResult(
        match=False,
        difference_percentage=100.0,
        diff_image=RasterBuffer(overlay),
        tolerance=tolerance,
        differing_pixels=width * height,
        total_pixels=width * height,
        baseline_size=baseline.size,
        candidate_size=candidate.size,
    )


def compare_buffers(
    baseline: RasterBuffer,
    candidate: RasterBuffer,
    tolerance: float = 0.0,
    *,
    always_render_diff: bool = False,
    workers: int = 1,
) -> ComparisonResult:
    """Compare ``candidate`` against ``baseline`` pixel by pixel.

    Images of different sizes never match: the result reports 100% difference
    and an overlay spanning both extents, with the non-overlapping area fully
    highlighted. Otherwise a pixel counts as different when its summed RGB
    delta exceeds ``PIXEL_NOISE_THRESHOLD``; alpha is ignored. The overlay is
    produced whenever any pixel differs, even when the result still matches,
    and also for identical images when ``always_render_diff`` is set.
    """
    tolerance = _validate_tolerance(tolerance)
    if baseline.size != candidate.size:
        return _mismatched_sizes(baseline, candidate, tolerance)

    mask = difference_mask(baseline.data, candidate.data, workers=workers)
    differing = int(np.count_nonzero(mask))
    total = candidate.pixel_count
    percentage = differing / total * 100.0
    diff_image = None
    if differing or always_render_diff:
        diff_image = _highlight(candidate.data, mask)
    result = ComparisonResult(
        match=percentage <= tolerance,
        difference_percentage=percentage,
        diff_image=diff_image,
        tolerance=tolerance,
        differing_pixels=differing,
        total_pixels=total,
        baseline_size=baseline.size,
        candidate_size=candidate.size,
    )
    logger.debug(
        "compared %sx%s: %d/%d pixels differ (%.4f%%), match=%s",
        candidate.width,
        candidate.height,
        differing,
        total,
        percentage,
        result.match,
    )
    return result
