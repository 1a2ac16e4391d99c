"""Dense linear algebra (HPL-style DGEMM) suite."""

from __future__ import annotations

import re
from typing import Dict

from cb_common.errors import OutputParseError
from cb_runner.models.config import BenchmarkConfig
from cb_runner.plugin_system.interface import BenchmarkSuite

# Expected line: "N=4096  Time=12.345  GFLOPS=56.78"
_FIELDS = {
    "matrix_size": re.compile(r"\bN=([0-9]+)"),
    "execution_time": re.compile(r"\bTime=([0-9.]+)"),
    "gflops": re.compile(r"\bGFLOPS=([0-9.]+)"),
}

_KERNEL = r"""
#include <stdio.h>
#include <stdlib.h>
#include <omp.h>
int main(int argc, char **argv) {
    int n = argc > 1 ? atoi(argv[1]) : 2048;
    double *a = malloc(sizeof(double) * n * n);
    double *b = malloc(sizeof(double) * n * n);
    double *c = calloc((size_t)n * n, sizeof(double));
    for (long i = 0; i < (long)n * n; i++) { a[i] = 1.0 / (i + 1); b[i] = 2.0; }
    double t0 = omp_get_wtime();
    #pragma omp parallel for
    for (int i = 0; i < n; i++)
        for (int k = 0; k < n; k++)
            for (int j = 0; j < n; j++)
                c[(long)i * n + j] += a[(long)i * n + k] * b[(long)k * n + j];
    double t = omp_get_wtime() - t0;
    printf("N=%d  Time=%.3f  GFLOPS=%.2f\n", n, t, 2.0 * n * n * (double)n / t / 1e9);
    return 0;
}
"""

# Library-backed variants replace the hand-written loop with cblas_dgemm.
_CBLAS_KERNEL = r"""
#include <stdio.h>
#include <stdlib.h>
#include <omp.h>
#ifdef USE_MKL
#include <mkl.h>
#else
#include <cblas.h>
#endif
int main(int argc, char **argv) {
    int n = argc > 1 ? atoi(argv[1]) : 2048;
    double *a = malloc(sizeof(double) * n * n);
    double *b = malloc(sizeof(double) * n * n);
    double *c = calloc((size_t)n * n, sizeof(double));
    for (long i = 0; i < (long)n * n; i++) { a[i] = 1.0 / (i + 1); b[i] = 2.0; }
    double t0 = omp_get_wtime();
    cblas_dgemm(CblasRowMajor, CblasNoTrans, CblasNoTrans, n, n, n, 1.0, a, n, b, n, 0.0, c, n);
    double t = omp_get_wtime() - t0;
    printf("N=%d  Time=%.3f  GFLOPS=%.2f\n", n, t, 2.0 * n * n * (double)n / t / 1e9);
    return 0;
}
"""

_ONEAPI_ROOT = "/opt/intel/oneapi/mkl/latest"

# variant key -> (install command, compile flags, link flags)
_BLAS_BACKENDS = {
    "mkl": (
        "sudo yum-config-manager --add-repo https://yum.repos.intel.com/oneapi"
        " && sudo yum install -y --nogpgcheck intel-oneapi-mkl-devel",
        f"-DUSE_MKL -I{_ONEAPI_ROOT}/include",
        f"-L{_ONEAPI_ROOT}/lib/intel64 -Wl,-rpath,{_ONEAPI_ROOT}/lib/intel64 -lmkl_rt",
    ),
    "blis": (
        "sudo yum install -y blis-devel",
        "-I/usr/include/blis",
        "-lblis",
    ),
}

_VARIANT_FLAGS = {
    "vector": "-ftree-vectorize",
    "avx512": "-mavx512f -mfma",
    "zen4": "-march=znver4",
    "sve": "-march=armv8.2-a+sve",
    "neoverse": "-mcpu=neoverse-v1",
}


class HplSuite(BenchmarkSuite):
    """Compile a blocked DGEMM kernel and report GFLOPS."""

    @property
    def name(self) -> str:
        return "hpl"

    @property
    def description(self) -> str:
        return "Double-precision matrix multiply throughput (GFLOPS)"

    def build_command(self, config: BenchmarkConfig) -> str:
        variant = config.variant or ""
        install = "sudo yum install -y gcc >/dev/null 2>&1 || true"
        kernel = _KERNEL
        flags = ["-O3", "-fopenmp"]
        libs = ""
        for key, (setup, compile_flags, link_flags) in _BLAS_BACKENDS.items():
            if key in variant:
                install = f"{install}\n{setup} >/dev/null 2>&1"
                kernel = _CBLAS_KERNEL
                flags.append(compile_flags)
                libs = f" {link_flags}"
                break
        for key, flag in _VARIANT_FLAGS.items():
            if key in variant:
                flags.append(flag)
        threads = "1" if "single" in variant else "$(nproc)"
        return "\n".join(
            [
                "#!/bin/bash",
                "set -euo pipefail",
                install,
                "workdir=$(mktemp -d) && cd \"$workdir\"",
                "cat > dgemm.c <<'KERNEL'",
                kernel.strip(),
                "KERNEL",
                f"gcc {' '.join(flags)} dgemm.c -o dgemm{libs}",
                f"export OMP_NUM_THREADS={threads}",
                "./dgemm 2048",
            ]
        )

    def parse_output(self, output: str) -> Dict[str, float]:
        metrics: Dict[str, float] = {}
        for raw in output.splitlines():
            line = raw.strip()
            if "GFLOPS=" not in line:
                continue
            for field, pattern in _FIELDS.items():
                match = pattern.search(line)
                if not match:
                    continue
                try:
                    metrics[field] = float(match.group(1))
                except ValueError:
                    continue
        if "gflops" not in metrics:
            raise OutputParseError("No GFLOPS line found", context={"suite": self.name})
        return metrics
