from __future__ import annotations

import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from visreg.errors import ConfigError
from visreg.mask import DEFAULT_MASK_COLOR
from visreg.types import RGBA

DEFAULT_SETTINGS = Path(__file__).resolve().parents[2] / "config" / "visreg.v1.yaml"
BROWSERS = ("chromium", "firefox", "webkit")
WAIT_UNTIL = ("load", "domcontentloaded", "networkidle", "commit")


@dataclass(frozen=True)
class CaptureSettings:
    browser: str = "chromium"
    viewport_width: int = 1280
    viewport_height: int = 800
    page_load_timeout_sec: float = 60.0
    wait_until: str = "load"
    headless: bool = True


@dataclass(frozen=True)
class ComparisonSettings:
    tolerance: float = 0.0
    workers: int = 1
    always_render_diff: bool = False
    mask_fill_color: RGBA = DEFAULT_MASK_COLOR


@dataclass(frozen=True)
class PathSettings:
    baseline_dir: Path = Path("baselines")
    output_dir: Path = Path("output")


@dataclass(frozen=True)
class Settings:
    capture: CaptureSettings = CaptureSettings()
    comparison: ComparisonSettings = ComparisonSettings()
    paths: PathSettings = PathSettings()


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as exc:
        raise ConfigError(f"Cannot read settings file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected mapping at top of YAML: {path}")
    return data


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {}) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Settings section '{name}' must be a mapping")
    return section


def _coerce_color(value: Any) -> RGBA:
    if not isinstance(value, (list, tuple)) or len(value) not in (3, 4):
        raise ConfigError(f"Color must be a list of 3 or 4 integers, got {value!r}")
    channels = [int(c) for c in value]
    if any(c < 0 or c > 255 for c in channels):
        raise ConfigError(f"Color channels must be within 0-255, got {value!r}")
    if len(channels) == 3:
        channels.append(255)
    return channels[0], channels[1], channels[2], channels[3]


def _check_tolerance(value: float) -> float:
    if not 0.0 <= value <= 100.0:
        raise ConfigError(f"tolerance must be between 0 and 100, got {value}")
    return value


def _load_capture(section: dict[str, Any]) -> CaptureSettings:
    defaults = CaptureSettings()
    browser = str(section.get("browser", defaults.browser)).strip().lower()
    if browser not in BROWSERS:
        raise ConfigError(f"Unsupported browser '{browser}', expected one of {', '.join(BROWSERS)}")
    wait_until = str(section.get("wait_until", defaults.wait_until))
    if wait_until not in WAIT_UNTIL:
        raise ConfigError(f"Unsupported wait_until '{wait_until}'")
    viewport_width = int(section.get("viewport_width", defaults.viewport_width))
    viewport_height = int(section.get("viewport_height", defaults.viewport_height))
    if viewport_width <= 0 or viewport_height <= 0:
        raise ConfigError(f"Viewport must be positive, got {viewport_width}x{viewport_height}")
    return CaptureSettings(
        browser=browser,
        viewport_width=viewport_width,
        viewport_height=viewport_height,
        page_load_timeout_sec=float(
            section.get("page_load_timeout_sec", defaults.page_load_timeout_sec)
        ),
        wait_until=wait_until,
        headless=bool(section.get("headless", defaults.headless)),
    )


def _load_comparison(section: dict[str, Any]) -> ComparisonSettings:
    defaults = ComparisonSettings()
    workers = int(section.get("workers", defaults.workers))
    if workers < 1:
        raise ConfigError(f"workers must be at least 1, got {workers}")
    fill = section.get("mask_fill_color")
    return ComparisonSettings(
        tolerance=_check_tolerance(float(section.get("tolerance", defaults.tolerance))),
        workers=workers,
        always_render_diff=bool(section.get("always_render_diff", defaults.always_render_diff)),
        mask_fill_color=_coerce_color(fill) if fill is not None else defaults.mask_fill_color,
    )


def _load_paths(section: dict[str, Any], base_dir: Path) -> PathSettings:
    defaults = PathSettings()

    def _resolve(key: str, default: Path) -> Path:
        path = Path(section.get(key, default))
        return path if path.is_absolute() else base_dir / path

    return PathSettings(
        baseline_dir=_resolve("baseline_dir", defaults.baseline_dir),
        output_dir=_resolve("output_dir", defaults.output_dir),
    )


def _apply_env(settings: Settings) -> Settings:
    browser = os.environ.get("VISREG_BROWSER")
    if browser:
        settings = replace(settings, capture=_load_capture({**asdict(settings.capture), "browser": browser}))
    tolerance = os.environ.get("VISREG_TOLERANCE")
    if tolerance:
        try:
            value = float(tolerance)
        except ValueError as exc:
            raise ConfigError(f"VISREG_TOLERANCE is not a number: {tolerance!r}") from exc
        settings = replace(
            settings, comparison=replace(settings.comparison, tolerance=_check_tolerance(value))
        )
    baseline_dir = os.environ.get("VISREG_BASELINE_DIR")
    if baseline_dir:
        settings = replace(settings, paths=replace(settings.paths, baseline_dir=Path(baseline_dir)))
    output_dir = os.environ.get("VISREG_OUTPUT_DIR")
    if output_dir:
        settings = replace(settings, paths=replace(settings.paths, output_dir=Path(output_dir)))
    return settings


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from YAML, then apply ``VISREG_*`` environment overrides.

    Relative paths in the ``paths`` section resolve against the settings file's
    directory. A missing default file falls back to built-in defaults.
    """
    resolved = path or DEFAULT_SETTINGS
    if path is None and not resolved.exists():
        return _apply_env(Settings())
    data = _load_yaml(resolved)
    try:
        settings = Settings(
            capture=_load_capture(_section(data, "capture")),
            comparison=_load_comparison(_section(data, "comparison")),
            paths=_load_paths(_section(data, "paths"), resolved.parent),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid settings value in {resolved}: {exc}") from exc
    return _apply_env(settings)
