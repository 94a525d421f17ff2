from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Sequence

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from visreg.config import BROWSERS, CaptureSettings
from visreg.errors import CaptureUnavailable, ElementNotFound, NavigationError
from visreg.types import Rectangle

logger = logging.getLogger(__name__)

READY_STATE_JS = "() => document.readyState === 'complete'"


@dataclass
class BrowserSession:
    """Caller-owned browser handle; create it with ``browser_session``."""

    browser_name: str
    context: Any
    settings: CaptureSettings


@contextmanager
def browser_session(settings: CaptureSettings) -> Iterator[BrowserSession]:
    """Launch the configured browser and always close it on exit."""
    if settings.browser not in BROWSERS:
        raise CaptureUnavailable(
            f"Unsupported browser '{settings.browser}'",
            hint=f"Use one of: {', '.join(BROWSERS)}.",
        )
    with sync_playwright() as playwright:
        try:
            browser = getattr(playwright, settings.browser).launch(headless=settings.headless)
        except PlaywrightError as exc:
            raise CaptureUnavailable(
                f"Failed to launch {settings.browser}: {exc}",
                hint="Run 'playwright install' for the configured browser.",
            ) from exc
        logger.info("Launched %s (headless=%s)", settings.browser, settings.headless)
        try:
            try:
                context = browser.new_context(
                    viewport={"width": settings.viewport_width, "height": settings.viewport_height}
                )
            except PlaywrightError as exc:
                raise CaptureUnavailable(f"Failed to open a {settings.browser} context: {exc}") from exc
            yield BrowserSession(browser_name=settings.browser, context=context, settings=settings)
        finally:
            browser.close()
            logger.info("Closed %s", settings.browser)


class PlaywrightCaptureAdapter:
    def __init__(self, session: BrowserSession) -> None:
        self.session = session

    @property
    def _timeout_ms(self) -> float:
        return self.session.settings.page_load_timeout_sec * 1000.0

    @contextmanager
    def _open(self, url: str) -> Iterator[Any]:
        try:
            page = self.session.context.new_page()
        except PlaywrightError as exc:
            raise CaptureUnavailable(f"Failed to open a page for {url}: {exc}") from exc
        try:
            try:
                response = page.goto(
                    url,
                    wait_until=self.session.settings.wait_until,
                    timeout=self._timeout_ms,
                )
                page.wait_for_function(READY_STATE_JS, timeout=self._timeout_ms)
            except PlaywrightTimeoutError as exc:
                raise NavigationError(
                    f"Timed out loading {url} after {self.session.settings.page_load_timeout_sec}s",
                    hint="Raise capture.page_load_timeout_sec or check the page.",
                ) from exc
            except PlaywrightError as exc:
                raise NavigationError(f"Failed to load {url}: {exc}") from exc
            if response is not None and response.status >= 400:
                logger.warning("%s answered HTTP %s; capturing anyway", url, response.status)
            yield page
        finally:
            page.close()

    def _screenshot(self, page: Any, url: str) -> bytes:
        try:
            return page.screenshot(type="png")
        except PlaywrightError as exc:
            raise CaptureUnavailable(f"Screenshot of {url} failed: {exc}") from exc

    def _rectangle(self, page: Any, url: str, selector: str) -> Rectangle:
        try:
            element = page.query_selector(selector)
        except PlaywrightError as exc:
            raise CaptureUnavailable(
                f"Selector '{selector}' could not be evaluated on {url}: {exc}",
                hint="Check the CSS selector syntax.",
            ) from exc
        if element is None:
            raise ElementNotFound(f"No element matches '{selector}' on {url}")
        try:
            box = element.bounding_box()
        except PlaywrightError as exc:
            raise ElementNotFound(f"Element '{selector}' on {url} detached before it was measured: {exc}") from exc
        if box is None:
            raise ElementNotFound(f"Element '{selector}' on {url} is not visible")
        return Rectangle.from_box(box)

    def capture(self, url: str) -> bytes:
        with self._open(url) as page:
            payload = self._screenshot(page, url)
        logger.info("Captured %s (%d bytes)", url, len(payload))
        return payload

    def capture_region(self, url: str, selector: str) -> tuple[bytes, Rectangle]:
        with self._open(url) as page:
            rect = self._rectangle(page, url, selector)
            payload = self._screenshot(page, url)
        logger.info("Captured %s with '%s' at %s", url, selector, rect.to_list())
        return payload, rect

    def locate(self, url: str, selectors: Sequence[str]) -> list[Rectangle]:
        with self._open(url) as page:
            return [self._rectangle(page, url, selector) for selector in selectors]
