"""Shared helpers for cloudbench."""

from cb_common.api import (
    CBError,
    CapacityExhaustedError,
    ConfigurationError,
    StopToken,
    configure_logging,
    error_to_payload,
)

__all__ = [
    "CBError",
    "CapacityExhaustedError",
    "ConfigurationError",
    "StopToken",
    "configure_logging",
    "error_to_payload",
]
