"""Benchmark suite capability contract and registry."""

from cb_runner.plugin_system.interface import BenchmarkSuite
from cb_runner.plugin_system.registry import ENTRYPOINT_GROUP, SuiteRegistry

__all__ = ["BenchmarkSuite", "ENTRYPOINT_GROUP", "SuiteRegistry"]
