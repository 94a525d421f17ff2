from __future__ import annotations

from pathlib import Path

import pytest

from visreg.config import DEFAULT_SETTINGS, Settings, load_settings
from visreg.errors import ConfigError

ROOT = Path(__file__).resolve().parents[1]


def _write_settings(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(text)
    return path


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("VISREG_BROWSER", "VISREG_TOLERANCE", "VISREG_BASELINE_DIR", "VISREG_OUTPUT_DIR"):
        monkeypatch.delenv(name, raising=False)


def test_repo_settings_load() -> None:
    assert DEFAULT_SETTINGS == ROOT / "config" / "visreg.v1.yaml"
    settings = load_settings()

    assert settings.capture.browser == "chromium"
    assert settings.capture.page_load_timeout_sec == 60.0
    assert settings.comparison.tolerance == 0.0
    assert settings.comparison.mask_fill_color == (0, 0, 0, 255)


def test_partial_settings_use_defaults(tmp_path: Path) -> None:
    path = _write_settings(
        tmp_path,
        "capture:\n  browser: Firefox\n  viewport_width: 1024\ncomparison:\n  mask_fill_color: [255, 0, 0]\n",
    )
    settings = load_settings(path)

    assert settings.capture.browser == "firefox"
    assert settings.capture.viewport_width == 1024
    assert settings.capture.viewport_height == Settings().capture.viewport_height
    assert settings.comparison.mask_fill_color == (255, 0, 0, 255)
    assert settings.paths.baseline_dir == tmp_path / "baselines"


def test_empty_settings_file(tmp_path: Path) -> None:
    settings = load_settings(_write_settings(tmp_path, ""))
    assert settings.capture == Settings().capture
    assert settings.comparison == Settings().comparison


@pytest.mark.parametrize(
    "text",
    [
        "capture:\n  browser: ie\n",
        "comparison:\n  tolerance: 150\n",
        "comparison:\n  workers: 0\n",
        "capture:\n  viewport_width: abc\n",
        "comparison:\n  mask_fill_color: [1, 2]\n",
        "- not\n- a mapping\n",
        "capture: [1, 2]\n",
    ],
)
def test_invalid_settings_raise(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigError) as excinfo:
        load_settings(_write_settings(tmp_path, text))
    assert excinfo.value.code == "E4001_CONFIG_INVALID"


def test_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VISREG_BROWSER", "webkit")
    monkeypatch.setenv("VISREG_TOLERANCE", "2.5")
    monkeypatch.setenv("VISREG_BASELINE_DIR", str(tmp_path / "approved"))

    settings = load_settings(_write_settings(tmp_path, "capture:\n  viewport_width: 640\n"))

    assert settings.capture.browser == "webkit"
    assert settings.capture.viewport_width == 640
    assert settings.comparison.tolerance == 2.5
    assert settings.paths.baseline_dir == tmp_path / "approved"


def test_invalid_environment_tolerance(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VISREG_TOLERANCE", "lots")
    with pytest.raises(ConfigError):
        load_settings(_write_settings(tmp_path, ""))
