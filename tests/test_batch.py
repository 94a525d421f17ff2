from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Sequence

import numpy as np
import pytest
from playwright.sync_api import Error as PlaywrightError

from capture import BrowserSession, PlaywrightCaptureAdapter
from visreg.baseline_store import FileBaselineStore
from visreg.batch import load_cases, run_batch
from visreg.config import CaptureSettings
from visreg.errors import ConfigError, NavigationError
from visreg.raster import RasterBuffer
from visreg.types import Rectangle

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)


class PageAdapter:
    def __init__(self, pages: dict[str, RasterBuffer]) -> None:
        self.pages = pages

    def capture(self, url: str) -> bytes:
        if url not in self.pages:
            raise NavigationError(f"Failed to load {url}")
        return self.pages[url].to_png_bytes()

    def capture_region(self, url: str, selector: str) -> tuple[bytes, Rectangle]:
        raise NotImplementedError

    def locate(self, url: str, selectors: Sequence[str]) -> list[Rectangle]:
        raise NotImplementedError


def _dotted(size: int = 4) -> RasterBuffer:
    array = np.array(RasterBuffer.filled(size, size, WHITE).data)
    array[0, 0] = BLACK
    return RasterBuffer.from_array(array)


def _write_manifest(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "manifest.yaml"
    path.write_text(text)
    return path


@pytest.fixture
def store(tmp_path: Path) -> FileBaselineStore:
    store = FileBaselineStore(tmp_path / "baselines")
    store.save("home", RasterBuffer.filled(4, 4, WHITE).to_png_bytes())
    return store


def test_batch_mixes_files_and_urls(tmp_path: Path, store: FileBaselineStore) -> None:
    RasterBuffer.filled(4, 4, WHITE).save(tmp_path / "same.png")
    _dotted().save(tmp_path / "dotted.png")
    manifest = _write_manifest(
        tmp_path,
        """cases:
  - id: same
    baseline: home
    candidate: same.png
  - id: dotted
    baseline: home
    candidate: dotted.png
  - id: dotted_masked
    baseline: home
    candidate: dotted.png
    mask_regions: [[0, 0, 1, 1]]
  - id: live
    baseline: home
    url: http://example.test/
  - id: offline
    baseline: home
    url: http://offline.test/
  - id: no_baseline
    baseline: missing
    candidate: same.png
""",
    )
    adapter = PageAdapter({"http://example.test/": RasterBuffer.filled(4, 4, WHITE)})

    @contextmanager
    def factory() -> Iterator[PageAdapter]:
        yield adapter

    output_dir = tmp_path / "out"
    report = run_batch(load_cases(manifest), store, output_dir, adapter_factory=factory, jobs=3)

    statuses = {item["id"]: item["status"] for item in report["cases"]}
    assert statuses == {
        "same": "pass",
        "dotted": "fail",
        "dotted_masked": "pass",
        "live": "pass",
        "offline": "error",
        "no_baseline": "error",
    }
    assert [item["id"] for item in report["cases"]][0] == "same"
    assert report["summary"] == {"total": 6, "passed": 3, "failed": 1, "errors": 2}

    cases = {item["id"]: item for item in report["cases"]}
    assert cases["offline"]["error"]["code"] == "E2002_NAVIGATION_FAILED"
    assert cases["no_baseline"]["error"]["code"] == "E3001_BASELINE_MISSING"
    assert cases["dotted"]["result"]["difference_percentage"] == pytest.approx(100 / 16)
    assert Path(cases["dotted"]["diff_path"]).exists()
    assert cases["same"]["diff_path"] is None

    summary = json.loads((output_dir / "summary.json").read_text())
    assert summary["summary"]["failed"] == 1
    markdown = (output_dir / "summary.md").read_text()
    assert "- dotted: fail" in markdown
    assert "- offline: error E2002_NAVIGATION_FAILED" in markdown


class CrashingAdapter(PageAdapter):
    def capture(self, url: str) -> bytes:
        raise RuntimeError("renderer crashed")


class SelectorErrorPage:
    def goto(self, url: str, wait_until: str, timeout: float) -> None:
        return None

    def wait_for_function(self, expression: str, timeout: float) -> None:
        return None

    def query_selector(self, selector: str) -> None:
        raise PlaywrightError(f"SyntaxError: '{selector}' is not a valid selector")

    def screenshot(self, type: str) -> bytes:
        return RasterBuffer.filled(4, 4, WHITE).to_png_bytes()

    def close(self) -> None:
        return None


class SelectorErrorContext:
    def new_page(self) -> SelectorErrorPage:
        return SelectorErrorPage()


def test_failing_cases_do_not_abort_the_batch(tmp_path: Path, store: FileBaselineStore) -> None:
    RasterBuffer.filled(4, 4, WHITE).save(tmp_path / "same.png")
    manifest = _write_manifest(
        tmp_path,
        """cases:
  - id: same
    baseline: home
    candidate: same.png
  - id: bad_selector
    baseline: home
    url: http://example.test/
    selector: "div[[["
""",
    )
    session = BrowserSession(browser_name="chromium", context=SelectorErrorContext(), settings=CaptureSettings())

    @contextmanager
    def factory() -> Iterator[PlaywrightCaptureAdapter]:
        yield PlaywrightCaptureAdapter(session)

    output_dir = tmp_path / "out"
    report = run_batch(load_cases(manifest), store, output_dir, adapter_factory=factory, jobs=2)

    cases = {item["id"]: item for item in report["cases"]}
    assert cases["same"]["status"] == "pass"
    assert cases["bad_selector"]["status"] == "error"
    assert cases["bad_selector"]["error"]["code"] == "E2001_CAPTURE_UNAVAILABLE"
    assert json.loads((output_dir / "summary.json").read_text())["summary"]["errors"] == 1


def test_unexpected_failure_is_recorded_as_error(tmp_path: Path, store: FileBaselineStore) -> None:
    RasterBuffer.filled(4, 4, WHITE).save(tmp_path / "same.png")
    manifest = _write_manifest(
        tmp_path,
        "cases:\n  - id: same\n    baseline: home\n    candidate: same.png\n"
        "  - id: crash\n    baseline: home\n    url: http://example.test/\n",
    )

    @contextmanager
    def factory() -> Iterator[CrashingAdapter]:
        yield CrashingAdapter({})

    output_dir = tmp_path / "out"
    report = run_batch(load_cases(manifest), store, output_dir, adapter_factory=factory)

    assert report["summary"] == {"total": 2, "passed": 1, "failed": 0, "errors": 1}
    error = report["cases"][1]["error"]
    assert error["code"] == "E9999_UNEXPECTED"
    assert "renderer crashed" in error["message"]
    assert "- crash: error E9999_UNEXPECTED" in (output_dir / "summary.md").read_text()


def test_url_case_without_adapter_is_an_error(tmp_path: Path, store: FileBaselineStore) -> None:
    manifest = _write_manifest(
        tmp_path, "cases:\n  - id: live\n    baseline: home\n    url: http://example.test/\n"
    )
    report = run_batch(load_cases(manifest), store, tmp_path / "out")
    assert report["cases"][0]["error"]["code"] == "E4001_CONFIG_INVALID"


@pytest.mark.parametrize(
    "text",
    [
        "cases: nope\n",
        "cases:\n  - id: a\n    candidate: x.png\n",
        "cases:\n  - id: a\n    baseline: b\n",
        "cases:\n  - id: a\n    baseline: b\n    url: http://x\n    candidate: x.png\n",
        "cases:\n  - id: a\n    baseline: b\n    candidate: x.png\n  - id: a\n    baseline: c\n    candidate: y.png\n",
        "cases:\n  - id: a\n    baseline: b\n    candidate: x.png\n    mask_regions: [[1, 2]]\n",
        "cases:\n  - id: a\n    baseline: b\n    candidate: x.png\n    mask_regions: [[0.7, 0, 10, 5]]\n",
    ],
)
def test_invalid_manifests(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigError):
        load_cases(_write_manifest(tmp_path, text))
