"""STREAM memory-bandwidth suite."""

from __future__ import annotations

import re
from typing import Dict

from cb_common.errors import OutputParseError
from cb_runner.models.config import BenchmarkConfig
from cb_runner.plugin_system.interface import BenchmarkSuite

STREAM_SOURCE_URL = "https://www.cs.virginia.edu/stream/FTP/Code/stream.c"

# Example table lines:
# Copy:       12345.6     0.0012     0.0011     0.0013
_ROW = re.compile(
    r"^(Copy|Scale|Add|Triad):\s+([0-9.]+)\s+([0-9.]+)\s+([0-9.]+)\s+([0-9.]+)\s*$"
)

# Elements per array: 80M spills every cache level, 1M stays in L2/L3.
MEMORY_ARRAY_SIZE = 80_000_000
CACHE_ARRAY_SIZE = 1_000_000

_VARIANT_FLAGS = {
    "avx512": "-mavx512f",
    "avx2": "-mavx2",
    "neon": "-mcpu=native",
    "prefetch": "-fprefetch-loop-arrays",
}


class StreamSuite(BenchmarkSuite):
    """Build STREAM from source and report best rates in MB/s."""

    @property
    def name(self) -> str:
        return "stream"

    @property
    def description(self) -> str:
        return "STREAM sustainable memory bandwidth (copy/scale/add/triad)"

    def build_command(self, config: BenchmarkConfig) -> str:
        variant = config.variant or ""
        array_size = CACHE_ARRAY_SIZE if "cache" in variant else MEMORY_ARRAY_SIZE
        flags = ["-O3", "-fopenmp", f"-DSTREAM_ARRAY_SIZE={array_size}", "-DNTIMES=10"]
        for key, flag in _VARIANT_FLAGS.items():
            if key in variant:
                flags.append(flag)
        runner = "./stream"
        if "numa" in variant:
            runner = "numactl --interleave=all ./stream"
        return "\n".join(
            [
                "#!/bin/bash",
                "set -euo pipefail",
                "sudo yum install -y gcc numactl >/dev/null 2>&1 || true",
                "workdir=$(mktemp -d) && cd \"$workdir\"",
                f"curl -fsSL -o stream.c {STREAM_SOURCE_URL}",
                f"gcc {' '.join(flags)} stream.c -o stream",
                "export OMP_NUM_THREADS=$(nproc)",
                runner,
            ]
        )

    def parse_output(self, output: str) -> Dict[str, float]:
        metrics: Dict[str, float] = {}
        for raw in output.splitlines():
            match = _ROW.match(raw.strip())
            if not match:
                continue
            name = match.group(1).lower()
            try:
                metrics[name] = float(match.group(2))
                metrics[f"{name}_avg_time_s"] = float(match.group(3))
            except ValueError:
                continue
        if not metrics:
            raise OutputParseError(
                "No STREAM result rows found", context={"suite": self.name}
            )
        return metrics
