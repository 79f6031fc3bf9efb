"""Tagged error kinds shared by every pipeline component."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NETWORK_TIMEOUT = "network_timeout"
    NETWORK_ERROR = "network_error"
    PARSE_ERROR = "parse_error"
    NOT_FOUND = "not_found"
    QUOTA_EXCEEDED = "quota_exceeded"
    RETRY_EXHAUSTED = "retry_exhausted"
    FONT_RESOLUTION_FAILED = "font_resolution_failed"
    RENDER_ERROR = "render_error"
    VALIDATION_ERROR = "validation_error"


class PipelineError(RuntimeError):
    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


class FontFetchError(PipelineError):
    """Raised when a remote font cannot be resolved."""

    def __init__(self, kind: ErrorKind, family: str, message: str) -> None:
        super().__init__(kind, message)
        self.family = family


class QuotaExceededError(PipelineError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.QUOTA_EXCEEDED, message)


class RetryExhaustedError(PipelineError):
    """Raised once a retried operation has failed on every attempt."""

    def __init__(self, attempts: int, last_error: BaseException | None, message: str | None = None) -> None:
        detail = message or f"Operation failed after {attempts} attempts"
        if last_error is not None:
            detail = f"{detail}: {last_error}"
        super().__init__(ErrorKind.RETRY_EXHAUSTED, detail)
        self.attempts = attempts
        self.last_error = last_error

    def to_dict(self) -> dict[str, str]:
        payload = super().to_dict()
        payload["attempts"] = str(self.attempts)
        if isinstance(self.last_error, PipelineError):
            payload["last_error_kind"] = self.last_error.kind.value
        return payload


class FontResolutionFailedError(PipelineError):
    def __init__(self, family: str, message: str) -> None:
        super().__init__(ErrorKind.FONT_RESOLUTION_FAILED, message)
        self.family = family


class RenderError(PipelineError):
    """Opaque failure reported by the render boundary."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.RENDER_ERROR, message)


class ValidationError(PipelineError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.VALIDATION_ERROR, message)


class CodecError(RuntimeError):
    """Raised by codec implementations when a font container is malformed."""


def is_transient(error: BaseException) -> bool:
    """Return whether *error* is worth another attempt."""

    if isinstance(error, PipelineError):
        return error.kind in {ErrorKind.NETWORK_ERROR, ErrorKind.NETWORK_TIMEOUT}
    return True


__all__ = [
    "CodecError",
    "ErrorKind",
    "FontFetchError",
    "FontResolutionFailedError",
    "PipelineError",
    "QuotaExceededError",
    "RenderError",
    "RetryExhaustedError",
    "ValidationError",
    "is_transient",
]
