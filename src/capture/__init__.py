"""Browser capture adapters."""

from .base import CaptureAdapter
from .playwright_adapter import BrowserSession, PlaywrightCaptureAdapter, browser_session

__all__ = ["BrowserSession", "CaptureAdapter", "PlaywrightCaptureAdapter", "browser_session"]
