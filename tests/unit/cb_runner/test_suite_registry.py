import pytest

from cb_common.errors import UnknownSuiteError
from cb_runner.plugin_system.interface import BenchmarkSuite
from cb_runner.plugin_system.registry import SuiteRegistry

pytestmark = pytest.mark.unit_runner


class EchoSuite(BenchmarkSuite):
    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "prints a number"

    def build_command(self, config) -> str:
        return "echo value=1"

    def parse_output(self, output: str):
        return {"value": float(output.split("=")[1])}


def test_builtins_registered() -> None:
    registry = SuiteRegistry(discover_entrypoints=False)
    assert {"stream", "hpl"} <= registry.names()
    assert registry.get("stream").name == "stream"


def test_register_custom_suite() -> None:
    registry = SuiteRegistry([EchoSuite()], include_builtins=False, discover_entrypoints=False)
    assert registry.names() == {"echo"}
    assert registry.get("echo").parse_output("value=3") == {"value": 3.0}


def test_get_unknown_suite() -> None:
    registry = SuiteRegistry(discover_entrypoints=False)
    with pytest.raises(UnknownSuiteError) as excinfo:
        registry.get("nope")
    assert "stream" in excinfo.value.context["available"]


def test_validate_lists_all_unknown_names() -> None:
    registry = SuiteRegistry(discover_entrypoints=False)
    registry.validate(["stream", "hpl"])
    with pytest.raises(UnknownSuiteError) as excinfo:
        registry.validate(["stream", "micro", "fio"])
    assert excinfo.value.context["unknown"] == ["fio", "micro"]


def test_register_rejects_non_suites() -> None:
    registry = SuiteRegistry(include_builtins=False, discover_entrypoints=False)
    with pytest.raises(TypeError):
        registry.register(object())
