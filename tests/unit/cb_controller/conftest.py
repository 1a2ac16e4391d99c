import pytest

from cb_runner.models.config import BenchmarkConfig
from cb_runner.plugin_system.registry import SuiteRegistry


@pytest.fixture
def registry() -> SuiteRegistry:
    return SuiteRegistry(discover_entrypoints=False)


@pytest.fixture
def stream_config() -> BenchmarkConfig:
    return BenchmarkConfig(instance_type="m7i.large", benchmark_suite="stream")
