"""
Registry and discovery utilities for benchmark suites.
"""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Dict, Iterable, Optional

from cb_common.errors import UnknownSuiteError
from cb_runner.plugin_system.interface import BenchmarkSuite

logger = logging.getLogger(__name__)
ENTRYPOINT_GROUP = "cloudbench.suites"


def _builtin_suites() -> list[BenchmarkSuite]:
    from cb_runner.plugins.hpl import HplSuite
    from cb_runner.plugins.stream import StreamSuite

    return [StreamSuite(), HplSuite()]


class SuiteRegistry:
    """In-memory map from suite identifier to its capability.

    Built-in suites are registered eagerly; entry-point suites are discovered
    up front and imported on first use.
    """

    def __init__(
        self,
        suites: Optional[Iterable[BenchmarkSuite]] = None,
        include_builtins: bool = True,
        discover_entrypoints: bool = True,
    ) -> None:
        self._suites: Dict[str, BenchmarkSuite] = {}
        self._pending: Dict[str, importlib.metadata.EntryPoint] = {}
        if include_builtins:
            for suite in _builtin_suites():
                self.register(suite)
        for suite in suites or []:
            self.register(suite)
        if discover_entrypoints:
            self._discover_entrypoints()

    def register(self, suite: BenchmarkSuite) -> None:
        """Register a new suite, replacing any suite with the same name."""
        if not isinstance(suite, BenchmarkSuite):
            if not (hasattr(suite, "build_command") and hasattr(suite, "parse_output")):
                raise TypeError(f"Unknown suite type: {type(suite)}")
        self._suites[suite.name] = suite

    def get(self, name: str) -> BenchmarkSuite:
        if name not in self._suites and name in self._pending:
            self._load_entrypoint(name)
        if name not in self._suites:
            raise UnknownSuiteError(
                f"Benchmark suite '{name}' not registered",
                context={"suite": name, "available": sorted(self.names())},
            )
        return self._suites[name]

    def names(self) -> set[str]:
        return set(self._suites) | set(self._pending)

    def validate(self, names: Iterable[str]) -> None:
        """Fail fast when any of ``names`` has no registered capability."""
        unknown = sorted({name for name in names if name not in self.names()})
        if unknown:
            raise UnknownSuiteError(
                f"Unknown benchmark suites: {', '.join(unknown)}",
                context={"unknown": unknown, "available": sorted(self.names())},
            )

    def available(self, load_entrypoints: bool = False) -> Dict[str, BenchmarkSuite]:
        if load_entrypoints:
            for name in list(self._pending):
                self._load_entrypoint(name)
        return dict(self._suites)

    def _discover_entrypoints(self) -> None:
        """Collect entry points without importing them."""
        for entry_point in importlib.metadata.entry_points(group=ENTRYPOINT_GROUP):
            if entry_point.name not in self._suites:
                self._pending[entry_point.name] = entry_point

    def _load_entrypoint(self, name: str) -> None:
        entry_point = self._pending.pop(name, None)
        if entry_point is None:
            return
        loaded = entry_point.load()
        suite = loaded() if isinstance(loaded, type) else loaded
        logger.debug("Loaded suite %s from entry point %s", name, entry_point.value)
        self.register(suite)
