"""Benchmark requests, suite capabilities and remote execution for cloudbench."""

from cb_runner.api import (  # noqa: F401
    BenchmarkConfig,
    BenchmarkSuite,
    SsmRemoteExecutor,
    SuiteRegistry,
)

__all__ = ["BenchmarkConfig", "BenchmarkSuite", "SsmRemoteExecutor", "SuiteRegistry"]
