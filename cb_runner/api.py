"""Public API surface for cb_runner."""

from cb_runner.models.config import DEFAULT_REGION, BenchmarkConfig
from cb_runner.plugin_system.interface import BenchmarkSuite
from cb_runner.plugin_system.registry import ENTRYPOINT_GROUP, SuiteRegistry
from cb_runner.plugins.hpl import HplSuite
from cb_runner.plugins.stream import StreamSuite
from cb_runner.remote.ssm import RemoteExecutor, SsmRemoteExecutor

__all__ = [
    "BenchmarkConfig",
    "BenchmarkSuite",
    "DEFAULT_REGION",
    "ENTRYPOINT_GROUP",
    "HplSuite",
    "RemoteExecutor",
    "SsmRemoteExecutor",
    "StreamSuite",
    "SuiteRegistry",
]
