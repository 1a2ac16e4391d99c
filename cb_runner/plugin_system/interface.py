"""Contract every benchmark suite capability implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict

from cb_runner.models.config import BenchmarkConfig


class BenchmarkSuite(ABC):
    """
    A benchmark suite turns a request into a remote command and turns the
    command's raw text back into a flat field -> number map.

    The orchestration core only depends on this pair of operations.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for the suite (e.g., 'stream')."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description."""

    @abstractmethod
    def build_command(self, config: BenchmarkConfig) -> str:
        """Return a shell script that runs the benchmark once."""

    @abstractmethod
    def parse_output(self, output: str) -> Dict[str, float]:
        """Extract measurements; raise OutputParseError when nothing is found."""
