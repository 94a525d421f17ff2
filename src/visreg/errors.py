from __future__ import annotations

from dataclasses import dataclass


@dataclass
class VisRegError(Exception):
    code: str
    message: str
    hint: str

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message, "hint": self.hint}


class OutOfBounds(VisRegError):
    def __init__(self, message: str, hint: str = "Pixel coordinates must lie inside the image.") -> None:
        super().__init__(code="E1001_OUT_OF_BOUNDS", message=message, hint=hint)


class InvalidRegion(VisRegError):
    def __init__(
        self,
        message: str,
        hint: str = "Check the rectangle against the captured image size.",
    ) -> None:
        super().__init__(code="E1002_INVALID_REGION", message=message, hint=hint)


class DecodeError(VisRegError):
    def __init__(self, message: str, hint: str = "Provide a valid PNG image.") -> None:
        super().__init__(code="E1003_DECODE_FAILED", message=message, hint=hint)


class CaptureUnavailable(VisRegError):
    def __init__(
        self,
        message: str,
        hint: str = "Check that the browser can reach the page.",
        code: str = "E2001_CAPTURE_UNAVAILABLE",
    ) -> None:
        super().__init__(code=code, message=message, hint=hint)


class NavigationError(CaptureUnavailable):
    def __init__(self, message: str, hint: str = "Check the URL and network access.") -> None:
        super().__init__(message, hint=hint, code="E2002_NAVIGATION_FAILED")


class ElementNotFound(CaptureUnavailable):
    def __init__(self, message: str, hint: str = "Check the element selector.") -> None:
        super().__init__(message, hint=hint, code="E2003_ELEMENT_NOT_FOUND")


class BaselineMissing(VisRegError):
    def __init__(
        self,
        message: str,
        hint: str = "Create the baseline explicitly with the 'baseline' command.",
    ) -> None:
        super().__init__(code="E3001_BASELINE_MISSING", message=message, hint=hint)


class ConfigError(VisRegError):
    def __init__(self, message: str, hint: str = "Check the settings YAML and environment.") -> None:
        super().__init__(code="E4001_CONFIG_INVALID", message=message, hint=hint)
