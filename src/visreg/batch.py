from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import AbstractContextManager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

import yaml

from visreg.baseline_store import BaselineStore
from visreg.errors import ConfigError, VisRegError
from visreg.orchestrator import CompareOptions, compare, diff_buffers, load_baseline
from visreg.raster import RasterBuffer
from visreg.result import ComparisonResult

if TYPE_CHECKING:
    from capture.base import CaptureAdapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[], AbstractContextManager["CaptureAdapter"]]


@dataclass(frozen=True)
class BatchCase:
    id: str
    baseline: str
    url: str | None
    candidate: Path | None
    options: CompareOptions


def _load_manifest(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as exc:
        raise ConfigError(f"Cannot read manifest {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in manifest {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("manifest must contain a mapping.")
    if "cases" not in data or not isinstance(data["cases"], list):
        raise ConfigError("manifest must contain a list under 'cases'.")
    return data


def load_cases(path: Path, defaults: CompareOptions | None = None) -> list[BatchCase]:
    """Parse a manifest's ``cases`` list; candidate paths resolve against its directory."""
    data = _load_manifest(path)
    cases: list[BatchCase] = []
    seen: set[str] = set()
    for index, entry in enumerate(data["cases"]):
        if not isinstance(entry, dict):
            raise ConfigError(f"Case #{index} must be a mapping.")
        case_id = str(entry.get("id") or entry.get("baseline") or f"case_{index}")
        if case_id in seen:
            raise ConfigError(f"Duplicate case id '{case_id}'.")
        seen.add(case_id)
        baseline = entry.get("baseline")
        if not baseline:
            raise ConfigError(f"Case '{case_id}' is missing 'baseline'.")
        url = entry.get("url")
        candidate = entry.get("candidate")
        if bool(url) == bool(candidate):
            raise ConfigError(f"Case '{case_id}' needs exactly one of 'url' or 'candidate'.")
        try:
            options = CompareOptions.from_dict(entry, defaults)
        except (TypeError, ValueError, VisRegError) as exc:
            raise ConfigError(f"Case '{case_id}' has invalid options: {exc}") from exc
        cases.append(
            BatchCase(
                id=case_id,
                baseline=str(baseline),
                url=str(url) if url else None,
                candidate=(path.parent / str(candidate)) if candidate else None,
                options=options,
            )
        )
    return cases


def _run_case(
    case: BatchCase,
    store: BaselineStore,
    output_dir: Path,
    adapter_factory: AdapterFactory | None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"id": case.id, "baseline": case.baseline}
    try:
        if case.url is not None:
            if adapter_factory is None:
                raise ConfigError(f"Case '{case.id}' needs a browser but no capture adapter is configured.")
            payload["url"] = case.url
            with adapter_factory() as adapter:
                result = compare(case.baseline, case.url, case.options, adapter=adapter, store=store)
        else:
            assert case.candidate is not None
            payload["candidate"] = str(case.candidate)
            result = diff_buffers(
                load_baseline(store, case.baseline),
                RasterBuffer.from_file(case.candidate),
                case.options,
            )
    except VisRegError as exc:
        logger.warning("%s: %s %s", case.id, exc.code, exc.message)
        payload.update({"status": "error", "error": exc.to_dict()})
        return payload
    except Exception as exc:  # noqa: BLE001
        logger.exception("%s: unexpected failure", case.id)
        payload.update(
            {
                "status": "error",
                "error": {
                    "code": "E9999_UNEXPECTED",
                    "message": f"{type(exc).__name__}: {exc}",
                    "hint": "Check the case inputs and the capture environment.",
                },
            }
        )
        return payload
    payload.update({"status": "pass" if result.match else "fail", "result": result.to_dict()})
    payload["diff_path"] = _write_diff(result, output_dir, case.id)
    return payload


def _write_diff(result: ComparisonResult, output_dir: Path, case_id: str) -> str | None:
    if result.diff_image is None:
        return None
    diff_path = output_dir / f"{case_id}.diff.png"
    result.diff_image.save(diff_path)
    return str(diff_path)


def _write_summary(output_dir: Path, summary: dict[str, Any], results: list[dict[str, Any]]) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)
    payload = {"summary": summary, "cases": results}
    (output_dir / "summary.json").write_text(json.dumps(payload, indent=2, sort_keys=True))
    lines = [
        "# Visual Regression Summary",
        "",
        f"Total: {summary['total']}",
        f"Passed: {summary['passed']}",
        f"Failed: {summary['failed']}",
        f"Errors: {summary['errors']}",
        "",
        "## Failed cases",
    ]
    failed = [item for item in results if item["status"] != "pass"]
    if failed:
        for item in failed:
            if item["status"] == "error":
                detail = item["error"]["code"]
            else:
                detail = f"{item['result']['difference_percentage']:.4f}% ({item.get('diff_path')})"
            lines.append(f"- {item['id']}: {item['status']} {detail}")
    else:
        lines.append("- none")
    (output_dir / "summary.md").write_text("\n".join(lines) + "\n")


def run_batch(
    cases: list[BatchCase],
    store: BaselineStore,
    output_dir: Path,
    adapter_factory: AdapterFactory | None = None,
    jobs: int = 1,
) -> dict[str, Any]:
    """Run independent comparisons concurrently and write summary artifacts.

    Results keep manifest order. Each URL case opens its own capture adapter,
    so no browser state is shared between workers.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    with ThreadPoolExecutor(max_workers=max(jobs, 1)) as pool:
        results = list(
            pool.map(lambda case: _run_case(case, store, output_dir, adapter_factory), cases)
        )
    summary = {
        "total": len(results),
        "passed": sum(1 for item in results if item["status"] == "pass"),
        "failed": sum(1 for item in results if item["status"] == "fail"),
        "errors": sum(1 for item in results if item["status"] == "error"),
    }
    _write_summary(output_dir, summary, results)
    logger.info(
        "batch finished: %d passed, %d failed, %d errors",
        summary["passed"],
        summary["failed"],
        summary["errors"],
    )
    return {"summary": summary, "cases": results}
