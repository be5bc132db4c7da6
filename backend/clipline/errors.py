from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base error for pipeline stages.

    ``component`` names the stage or collaborator that raised it, ``details``
    carries structured context for the log line.
    """

    def __init__(self, message: str, component: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.component = component
        self.details = details or {}

    def __str__(self) -> str:
        prefix = f"[{self.component}] " if self.component else ""
        if self.details:
            return f"{prefix}{self.message} {self.details}"
        return f"{prefix}{self.message}"


class InputDataError(PipelineError):
    """Malformed or missing input; the item stays untouched until fixed."""


class CaptionDataError(InputDataError):
    pass


class ProviderError(PipelineError):
    """External API failure after retries were exhausted."""


class ProviderHTTPError(ProviderError):
    def __init__(self, status_code: int, body: str, component: str | None = None, url: str | None = None):
        super().__init__(
            f"HTTP {status_code}: {body[:400]}",
            component=component,
            details={"url": url} if url else None,
        )
        self.status_code = status_code
        self.body = body


class MediaToolError(PipelineError):
    def __init__(self, message: str, returncode: int | None = None, stderr: str = "", cmd: list[str] | None = None):
        super().__init__(
            message,
            component="media",
            details={"returncode": returncode, "cmd": " ".join((cmd or [])[:5])},
        )
        self.returncode = returncode
        self.stderr = stderr


class SeriesSplitError(PipelineError):
    """Terminal failure of a series split; the series is marked failed."""
