from __future__ import annotations

from typing import Protocol, Sequence

from visreg.types import Rectangle


class CaptureAdapter(Protocol):
    """Source of live PNG captures.

    Implementations raise ``NavigationError`` when the page cannot be loaded
    and ``ElementNotFound`` when a selector matches nothing visible.
    """

    def capture(self, url: str) -> bytes: ...

    def capture_region(self, url: str, selector: str) -> tuple[bytes, Rectangle]: ...

    def locate(self, url: str, selectors: Sequence[str]) -> list[Rectangle]: ...
