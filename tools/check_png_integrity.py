#!/usr/bin/env python3
from __future__ import annotations

import sys
from pathlib import Path

import typer

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if not sys.path or sys.path[0] != str(SRC_ROOT):
    sys.path.insert(0, str(SRC_ROOT))

from common.png_utils import PNG_MAGIC, has_png_magic  # noqa: E402
from visreg.config import load_settings  # noqa: E402
from visreg.errors import VisRegError  # noqa: E402
from visreg.raster import RasterBuffer  # noqa: E402

app = typer.Typer(add_completion=False, help="Verify that baseline PNGs are readable.")


def _collect_pngs(paths: list[Path]) -> list[Path]:
    pngs: list[Path] = []
    for path in paths:
        if path.is_file() and path.suffix.lower() == ".png":
            pngs.append(path)
        elif path.is_dir():
            pngs.extend(sorted(path.rglob("*.png")))
    return pngs


def _is_decodable(path: Path) -> bool:
    try:
        RasterBuffer.from_file(path)
    except VisRegError:
        return False
    return True


@app.command()
def main(
    targets: list[Path] | None = typer.Argument(
        None,
        help="Optional paths to scan (defaults to the configured baseline directory).",
    )
) -> None:
    """Scan PNG files and report any that cannot be used as baselines."""
    if not targets:
        targets = [load_settings().paths.baseline_dir]
    png_files = _collect_pngs([path.resolve() for path in targets])
    bad_magic = [path for path in png_files if not has_png_magic(path)]
    undecodable = [
        path for path in png_files if path not in bad_magic and not _is_decodable(path)
    ]
    if bad_magic or undecodable:
        if bad_magic:
            typer.echo(f"ERROR E1400_PNG_MAGIC_INVALID: {len(bad_magic)} invalid PNG(s).", err=True)
            typer.echo(f"HINT: Regenerate files with a valid {PNG_MAGIC!r} header.", err=True)
            for path in bad_magic:
                typer.echo(str(path), err=True)
        if undecodable:
            typer.echo(f"ERROR E1003_DECODE_FAILED: {len(undecodable)} unreadable PNG(s).", err=True)
            typer.echo("HINT: Recreate these baselines with the 'baseline' command.", err=True)
            for path in undecodable:
                typer.echo(str(path), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"OK: {len(png_files)} PNG(s) are valid baselines.")


if __name__ == "__main__":
    app(prog_name="check_png_integrity")
