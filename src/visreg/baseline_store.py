from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from visreg.errors import BaselineMissing, VisRegError

logger = logging.getLogger(__name__)


class BaselineStore(Protocol):
    def load(self, name: str) -> bytes: ...

    def exists(self, name: str) -> bool: ...

    def save(self, name: str, payload: bytes, overwrite: bool = False) -> Path: ...


class FileBaselineStore:
    """Baselines stored as ``<root>/<name>`` PNG files.

    Names without a suffix get ``.png`` appended. Names may contain
    sub-directories but must stay inside ``root``.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, name: str) -> Path:
        filename = name if Path(name).suffix else f"{name}.png"
        path = (self.root / filename).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise VisRegError(
                code="E3002_BASELINE_NAME_INVALID",
                message=f"Baseline name escapes the baseline directory: {name}",
                hint="Use a relative baseline name without '..'.",
            )
        return path

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def load(self, name: str) -> bytes:
        path = self.path_for(name)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise BaselineMissing(f"Baseline not found: {path}") from exc
        except OSError as exc:
            raise BaselineMissing(
                f"Baseline could not be read: {path} ({exc})",
                hint="Check file permissions on the baseline directory.",
            ) from exc

    def save(self, name: str, payload: bytes, overwrite: bool = False) -> Path:
        path = self.path_for(name)
        if path.exists() and not overwrite:
            raise VisRegError(
                code="E3003_BASELINE_EXISTS",
                message=f"Baseline already exists: {path}",
                hint="Pass --overwrite to replace an approved baseline.",
            )
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
        logger.info("Saved baseline %s (%d bytes)", path, len(payload))
        return path
