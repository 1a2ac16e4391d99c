"""Shared error taxonomy for cloudbench."""

from __future__ import annotations

from typing import Any, Mapping, TypeVar


def _normalize_context_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return normalize_context(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_context_value(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def normalize_context(context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-friendly copy of an error context mapping."""
    return {key: _normalize_context_value(val) for key, val in context.items()}


class CBError(Exception):
    """Base error type for typed failure handling."""

    retryable: bool = True

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.context = normalize_context(context or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def error_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.error_type, "message": str(self), "context": self.context}


class CapacityExhaustedError(CBError):
    """Admission ceiling reached or provider reported insufficient capacity.

    Callers should skip or defer the job instead of retrying it in a loop.
    """

    retryable = False


class ProvisioningError(CBError):
    """Instance could not be created (image, network or profile problems)."""

    retryable = False


class ReadinessTimeoutError(ProvisioningError):
    """Instance never reached the running state."""


class RemoteExecutionError(CBError):
    """Failure in remote command execution."""


class ExecutionTimeoutError(RemoteExecutionError):
    """Remote command exceeded its polling ceiling."""


class InsufficientSamplesError(CBError):
    """Too few successful iterations to produce a trustworthy result."""

    def __init__(
        self,
        message: str,
        *,
        samples: list[dict[str, float]] | None = None,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, context=context, cause=cause)
        self.samples = list(samples or [])


class EmergencyStopError(CBError):
    """Remote failsafe terminated the instance past its absolute runtime ceiling."""


class OutputParseError(CBError):
    """Failure parsing benchmark output."""


class StorageError(CBError):
    """Failure reading or writing durable job state."""


class ConfigurationError(CBError):
    """Failure due to invalid configuration."""

    retryable = False


class UnknownSuiteError(ConfigurationError):
    """Benchmark suite identifier has no registered capability."""


class CancelledError(CBError):
    """Work was interrupted by the caller's stop token."""

    retryable = False


T = TypeVar("T", bound=CBError)


def wrap_error(
    error_cls: type[T],
    message: str,
    *,
    context: Mapping[str, Any] | None = None,
    cause: Exception | None = None,
) -> T:
    """Create a typed CBError with optional context and cause."""
    return error_cls(message, context=context, cause=cause)


def error_to_payload(error: BaseException) -> dict[str, Any]:
    """Convert an error to a result/marker payload."""
    if isinstance(error, CBError):
        return {
            "error_type": error.error_type,
            "error": str(error),
            "error_context": error.context,
        }
    return {
        "error_type": error.__class__.__name__,
        "error": str(error),
        "error_context": {},
    }
