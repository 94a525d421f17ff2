from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from visreg.baseline_store import BaselineStore
from visreg.diff import compare_buffers
from visreg.errors import BaselineMissing, CaptureUnavailable, DecodeError
from visreg.mask import DEFAULT_MASK_COLOR, apply_masks
from visreg.raster import RasterBuffer
from visreg.region import extract
from visreg.result import ComparisonResult
from visreg.types import RGBA, Rectangle

if TYPE_CHECKING:
    from capture.base import CaptureAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompareOptions:
    """Per-call comparison options.

    Attributes:
        element_selector: CSS selector scoping the comparison to one element
        mask_regions: Rectangles blanked in both images before diffing. With
            ``element_selector`` set they are relative to the element's
            top-left corner, since masking happens after the crop
        mask_selectors: Elements whose boxes are blanked like ``mask_regions``
        tolerance: Maximum allowed difference percentage
        mask_fill_color: Fill used for masked rectangles
        always_render_diff: Produce a diff image even for identical images
        workers: Row bands compared concurrently inside one comparison
    """

    element_selector: str | None = None
    mask_regions: tuple[Rectangle, ...] = ()
    mask_selectors: tuple[str, ...] = ()
    tolerance: float = 0.0
    mask_fill_color: RGBA = DEFAULT_MASK_COLOR
    always_render_diff: bool = False
    workers: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any], defaults: CompareOptions | None = None) -> CompareOptions:
        base = defaults or cls()
        tolerance = float(data.get("tolerance", base.tolerance))
        if not 0.0 <= tolerance <= 100.0:
            raise ValueError(f"tolerance must be between 0 and 100, got {tolerance}")
        regions = data.get("mask_regions")
        selectors = data.get("mask_selectors")
        return cls(
            element_selector=data.get("selector", data.get("element_selector", base.element_selector)),
            mask_regions=(
                tuple(
                    item if isinstance(item, Rectangle) else Rectangle.from_sequence(item)
                    for item in regions
                )
                if regions
                else base.mask_regions
            ),
            mask_selectors=tuple(str(item) for item in selectors) if selectors else base.mask_selectors,
            tolerance=tolerance,
            mask_fill_color=base.mask_fill_color,
            always_render_diff=bool(data.get("always_render_diff", base.always_render_diff)),
            workers=base.workers,
        )


def _decode_capture(payload: bytes, url: str) -> RasterBuffer:
    try:
        return RasterBuffer.from_bytes(payload)
    except DecodeError as exc:
        raise CaptureUnavailable(f"Capture of {url} is not a usable image: {exc.message}") from exc


def _decode_baseline(payload: bytes, label: str) -> RasterBuffer:
    try:
        return RasterBuffer.from_bytes(payload)
    except DecodeError as exc:
        raise BaselineMissing(
            f"Baseline '{label}' could not be decoded: {exc.message}",
            hint="Recreate the baseline; the stored file is not a valid PNG.",
        ) from exc


def load_baseline(store: BaselineStore, name: str) -> RasterBuffer:
    return _decode_baseline(store.load(name), name)


def diff_buffers(
    baseline: RasterBuffer,
    candidate: RasterBuffer,
    options: CompareOptions,
    mask_regions: Sequence[Rectangle] = (),
) -> ComparisonResult:
    """Mask both buffers identically, then run the diff engine."""
    regions = list(options.mask_regions) + list(mask_regions)
    if regions:
        baseline = apply_masks(baseline, regions, options.mask_fill_color)
        candidate = apply_masks(candidate, regions, options.mask_fill_color)
    return compare_buffers(
        baseline,
        candidate,
        options.tolerance,
        always_render_diff=options.always_render_diff,
        workers=options.workers,
    )


def compare(
    baseline_name: str,
    url: str,
    options: CompareOptions | None = None,
    *,
    adapter: CaptureAdapter,
    store: BaselineStore,
) -> ComparisonResult:
    """Compare the live rendering of ``url`` against a stored baseline.

    Capture failures propagate as ``CaptureUnavailable`` (or its
    ``NavigationError`` / ``ElementNotFound`` subclasses) and a missing
    baseline as ``BaselineMissing``; neither produces a result. With an
    element selector the live capture is cropped to the element's box. The
    baseline is cropped the same way when it is a full capture of the same
    size, otherwise it is taken to be an element-scoped baseline already.
    """
    options = options or CompareOptions()
    baseline = load_baseline(store, baseline_name)

    extra_masks: list[Rectangle] = []
    if options.element_selector:
        payload, rect = adapter.capture_region(url, options.element_selector)
        full = _decode_capture(payload, url)
        candidate = extract(full, rect)
        if baseline.size == full.size:
            baseline = extract(baseline, rect)
        if options.mask_selectors:
            logger.warning("mask_selectors are ignored for element-scoped comparisons")
    else:
        candidate = _decode_capture(adapter.capture(url), url)
        if options.mask_selectors:
            extra_masks = adapter.locate(url, list(options.mask_selectors))

    result = diff_buffers(baseline, candidate, options, extra_masks)
    logger.info(
        "%s vs %s: match=%s difference=%.4f%% (tolerance %.4f%%)",
        baseline_name,
        url,
        result.match,
        result.difference_percentage,
        result.tolerance,
    )
    return result


def compare_files(
    baseline_path: Path,
    candidate_path: Path,
    options: CompareOptions | None = None,
) -> ComparisonResult:
    """Compare two PNG files on disk."""
    options = options or CompareOptions()
    if not baseline_path.is_file():
        raise BaselineMissing(f"Baseline not found: {baseline_path}")
    baseline = _decode_baseline(baseline_path.read_bytes(), str(baseline_path))
    candidate = RasterBuffer.from_file(candidate_path)
    if options.element_selector:
        logger.warning("element_selector is ignored when comparing files")
    return diff_buffers(baseline, candidate, options)


def create_baseline(
    baseline_name: str,
    url: str,
    *,
    adapter: CaptureAdapter,
    store: BaselineStore,
    element_selector: str | None = None,
    overwrite: bool = False,
) -> Path:
    """Capture ``url`` (optionally one element) and store it as a new baseline."""
    if element_selector:
        payload, rect = adapter.capture_region(url, element_selector)
        payload = extract(_decode_capture(payload, url), rect).to_png_bytes()
    else:
        payload = adapter.capture(url)
        _decode_capture(payload, url)
    return store.save(baseline_name, payload, overwrite=overwrite)
