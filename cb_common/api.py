"""Public API surface for cb_common."""

from cb_common.errors import (
    CancelledError,
    CapacityExhaustedError,
    CBError,
    ConfigurationError,
    EmergencyStopError,
    ExecutionTimeoutError,
    InsufficientSamplesError,
    OutputParseError,
    ProvisioningError,
    ReadinessTimeoutError,
    RemoteExecutionError,
    StorageError,
    UnknownSuiteError,
    error_to_payload,
    wrap_error,
)
from cb_common.logging import configure_logging, job_log_context
from cb_common.stop_token import StopToken

__all__ = [
    "CBError",
    "CancelledError",
    "CapacityExhaustedError",
    "ConfigurationError",
    "EmergencyStopError",
    "ExecutionTimeoutError",
    "InsufficientSamplesError",
    "OutputParseError",
    "ProvisioningError",
    "ReadinessTimeoutError",
    "RemoteExecutionError",
    "StopToken",
    "StorageError",
    "UnknownSuiteError",
    "configure_logging",
    "error_to_payload",
    "job_log_context",
    "wrap_error",
]
