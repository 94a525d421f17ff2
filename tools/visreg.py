#!/usr/bin/env python3
from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import typer

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if not sys.path or sys.path[0] != str(SRC_ROOT):
    sys.path.insert(0, str(SRC_ROOT))

from capture import PlaywrightCaptureAdapter, browser_session  # noqa: E402
from visreg import (  # noqa: E402
    CompareOptions,
    ComparisonResult,
    Rectangle,
    VisRegError,
    compare,
    compare_files,
    create_baseline,
)
from visreg.baseline_store import FileBaselineStore  # noqa: E402
from visreg.batch import load_cases, run_batch  # noqa: E402
from visreg.config import Settings, load_settings  # noqa: E402

EXIT_MATCH = 0
EXIT_MISMATCH = 1
EXIT_ERROR = 2

app = typer.Typer(
    add_completion=False,
    help="Compare page captures and PNG files against approved baselines.",
)
_state: dict[str, Any] = {"settings_path": None}


@app.callback()
def main(
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        exists=True,
        dir_okay=False,
        readable=True,
        help="Settings YAML (defaults to config/visreg.v1.yaml).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    _state["settings_path"] = settings


def _fail(exc: VisRegError) -> typer.Exit:
    typer.echo(f"ERROR {exc.code}: {exc.message}", err=True)
    typer.echo(f"HINT: {exc.hint}", err=True)
    return typer.Exit(code=EXIT_ERROR)


def _settings() -> Settings:
    try:
        return load_settings(_state["settings_path"])
    except VisRegError as exc:
        raise _fail(exc)


def _options(
    settings: Settings,
    tolerance: float | None,
    selector: str | None = None,
    masks: list[str] | None = None,
    mask_selectors: list[str] | None = None,
) -> CompareOptions:
    comparison = settings.comparison
    try:
        regions = tuple(Rectangle.from_sequence(item.split(",")) for item in masks or [])
    except (ValueError, VisRegError) as exc:
        typer.echo(f"ERROR E1002_INVALID_REGION: bad --mask value: {exc}", err=True)
        typer.echo("HINT: Use --mask x,y,width,height.", err=True)
        raise typer.Exit(code=EXIT_ERROR)
    return CompareOptions(
        element_selector=selector,
        mask_regions=regions,
        mask_selectors=tuple(mask_selectors or []),
        tolerance=comparison.tolerance if tolerance is None else tolerance,
        mask_fill_color=comparison.mask_fill_color,
        always_render_diff=comparison.always_render_diff,
        workers=comparison.workers,
    )


@contextmanager
def _adapter(settings: Settings) -> Iterator[PlaywrightCaptureAdapter]:
    with browser_session(settings.capture) as session:
        yield PlaywrightCaptureAdapter(session)


def _emit(result: ComparisonResult, diff_path: Path | None) -> None:
    payload = result.to_dict()
    if result.diff_image is not None and diff_path is not None:
        result.diff_image.save(diff_path)
        payload["diff_path"] = str(diff_path)
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=EXIT_MATCH if result.match else EXIT_MISMATCH)


@app.command()
def diff(
    baseline_png: Path = typer.Argument(..., dir_okay=False, help="Approved baseline PNG."),
    candidate_png: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Candidate PNG to check."
    ),
    tolerance: float | None = typer.Option(
        None, "--tolerance", "-t", min=0.0, max=100.0, help="Allowed difference percent."
    ),
    mask: list[str] | None = typer.Option(
        None, "--mask", help="Region to blank in both images: x,y,width,height. Repeatable."
    ),
    out: Path | None = typer.Option(None, "--out", "-o", dir_okay=False, help="Diff image path."),
) -> None:
    """Compare two PNG files."""
    settings = _settings()
    options = _options(settings, tolerance, masks=mask)
    try:
        result = compare_files(baseline_png, candidate_png, options)
    except VisRegError as exc:
        raise _fail(exc)
    _emit(result, out or settings.paths.output_dir / f"{candidate_png.stem}.diff.png")


@app.command("compare")
def compare_url(
    baseline: str = typer.Argument(..., help="Baseline name in the baseline directory."),
    url: str = typer.Argument(..., help="Page to capture."),
    selector: str | None = typer.Option(
        None, "--selector", help="CSS selector scoping the comparison to one element."
    ),
    tolerance: float | None = typer.Option(
        None, "--tolerance", "-t", min=0.0, max=100.0, help="Allowed difference percent."
    ),
    mask: list[str] | None = typer.Option(
        None,
        "--mask",
        help=(
            "Region to blank in both images: x,y,width,height. Repeatable. "
            "Relative to the element when --selector is given."
        ),
    ),
    mask_selector: list[str] | None = typer.Option(
        None, "--mask-selector", help="CSS selector of a dynamic element to blank. Repeatable."
    ),
) -> None:
    """Capture a page and compare it against a stored baseline."""
    settings = _settings()
    options = _options(settings, tolerance, selector, mask, mask_selector)
    store = FileBaselineStore(settings.paths.baseline_dir)
    try:
        with _adapter(settings) as adapter:
            result = compare(baseline, url, options, adapter=adapter, store=store)
    except VisRegError as exc:
        raise _fail(exc)
    stem = Path(baseline).stem
    _emit(result, settings.paths.output_dir / f"{stem}.diff.png")


@app.command("baseline")
def make_baseline(
    name: str = typer.Argument(..., help="Baseline name to create."),
    url: str = typer.Argument(..., help="Page to capture."),
    selector: str | None = typer.Option(None, "--selector", help="Capture only this element."),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing baseline."),
) -> None:
    """Capture a page and store it as an approved baseline."""
    settings = _settings()
    store = FileBaselineStore(settings.paths.baseline_dir)
    try:
        with _adapter(settings) as adapter:
            path = create_baseline(
                name,
                url,
                adapter=adapter,
                store=store,
                element_selector=selector,
                overwrite=overwrite,
            )
    except VisRegError as exc:
        raise _fail(exc)
    typer.echo(json.dumps({"baseline": str(path)}, indent=2))


@app.command()
def batch(
    manifest: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Manifest YAML with a cases list."
    ),
    jobs: int = typer.Option(1, "--jobs", "-j", min=1, help="Comparisons to run in parallel."),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", file_okay=False, help="Where to write diffs and summaries."
    ),
) -> None:
    """Run every case of a manifest and write summary.json / summary.md."""
    settings = _settings()
    defaults = _options(settings, None)
    try:
        cases = load_cases(manifest, defaults)
    except VisRegError as exc:
        raise _fail(exc)
    report = run_batch(
        cases,
        FileBaselineStore(settings.paths.baseline_dir),
        output_dir or settings.paths.output_dir,
        adapter_factory=lambda: _adapter(settings),
        jobs=jobs,
    )
    typer.echo(json.dumps(report["summary"], indent=2, sort_keys=True))
    summary = report["summary"]
    if summary["errors"]:
        raise typer.Exit(code=EXIT_ERROR)
    raise typer.Exit(code=EXIT_MISMATCH if summary["failed"] else EXIT_MATCH)


if __name__ == "__main__":
    app(prog_name="visreg")
