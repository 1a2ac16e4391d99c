"""Parsing tests for the built-in suites."""

import pytest

from cb_common.errors import OutputParseError
from cb_runner.models.config import BenchmarkConfig
from cb_runner.plugins.hpl import HplSuite
from cb_runner.plugins.stream import StreamSuite

pytestmark = pytest.mark.unit_runner

STREAM_OUTPUT = """\
-------------------------------------------------------------
Function    Best Rate MB/s  Avg time     Min time     Max time
Copy:           41230.5     0.031100     0.031040     0.031200
Scale:          40110.2     0.031950     0.031910     0.032010
Add:            42001.7     0.045720     0.045700     0.045800
Triad:          41900.0     0.045830     0.045810     0.045900
-------------------------------------------------------------
Solution Validates: avg error less than 1.000000e-13 on all three arrays
"""


def test_stream_parses_rates_and_times() -> None:
    metrics = StreamSuite().parse_output(STREAM_OUTPUT)
    assert metrics["triad"] == pytest.approx(41900.0)
    assert metrics["copy"] == pytest.approx(41230.5)
    assert metrics["add_avg_time_s"] == pytest.approx(0.04572)
    assert set(metrics) == {
        "copy", "scale", "add", "triad",
        "copy_avg_time_s", "scale_avg_time_s", "add_avg_time_s", "triad_avg_time_s",
    }


def test_stream_without_rows_fails() -> None:
    with pytest.raises(OutputParseError):
        StreamSuite().parse_output("Segmentation fault")


def test_stream_variant_flags() -> None:
    config = BenchmarkConfig(
        instance_type="m7i.large", benchmark_suite="stream", variant="stream-numa"
    )
    command = StreamSuite().build_command(config)
    assert "numactl --interleave=all ./stream" in command
    avx = BenchmarkConfig(
        instance_type="m7i.large", benchmark_suite="stream", variant="stream-avx512"
    )
    assert "-mavx512f" in StreamSuite().build_command(avx)


def test_hpl_parses_gflops_line() -> None:
    metrics = HplSuite().parse_output("warming up\nN=2048  Time=1.250  GFLOPS=13.74\n")
    assert metrics == {"matrix_size": 2048.0, "execution_time": 1.25, "gflops": 13.74}


def test_hpl_without_gflops_fails() -> None:
    with pytest.raises(OutputParseError):
        HplSuite().parse_output("N=2048 only")


def test_hpl_single_thread_variant() -> None:
    config = BenchmarkConfig(
        instance_type="c7g.large", benchmark_suite="hpl", variant="hpl-single"
    )
    assert "OMP_NUM_THREADS=1" in HplSuite().build_command(config)


def test_hpl_malformed_number_is_skipped() -> None:
    metrics = HplSuite().parse_output("N=2048  Time=1.2.3  GFLOPS=13.74\n")
    assert metrics == {"matrix_size": 2048.0, "gflops": 13.74}
    with pytest.raises(OutputParseError):
        HplSuite().parse_output("N=2048  Time=1.25  GFLOPS=1.3.7\n")


def test_hpl_library_variants_link_blas() -> None:
    def command(variant):
        return HplSuite().build_command(
            BenchmarkConfig(instance_type="m7i.large", benchmark_suite="hpl", variant=variant)
        )

    mkl = command("hpl-mkl")
    assert "cblas_dgemm" in mkl
    assert "-DUSE_MKL" in mkl
    assert mkl.splitlines()[-3].endswith("-lmkl_rt")
    blis = command("hpl-blis")
    assert "blis-devel" in blis
    assert "-lblis" in blis
    assert "cblas_dgemm" not in command("hpl")


def test_stream_cache_variant_uses_small_arrays() -> None:
    cache = BenchmarkConfig(
        instance_type="m7i.large", benchmark_suite="stream", variant="stream-cache"
    )
    base = BenchmarkConfig(instance_type="m7i.large", benchmark_suite="stream")
    assert "-DSTREAM_ARRAY_SIZE=1000000 " in StreamSuite().build_command(cache)
    assert "-DSTREAM_ARRAY_SIZE=80000000 " in StreamSuite().build_command(base)
