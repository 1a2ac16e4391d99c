"""Expand base benchmarks into architecture-specific variants."""

from __future__ import annotations

from typing import Dict, List, Sequence

from cb_provisioner.models.types import Architecture, detect_architecture

_COMMON_VARIANTS: Dict[str, List[str]] = {
    "stream": ["stream-numa", "stream-cache", "stream-prefetch"],
    "hpl": ["hpl-single", "hpl-vector"],
    "micro": ["micro-latency", "micro-ipc", "micro-tlb", "micro-cache"],
}

_ARCH_VARIANTS: Dict[str, Dict[Architecture, List[str]]] = {
    "stream": {
        Architecture.INTEL: ["stream-avx512"],
        Architecture.AMD: ["stream-avx2"],
        Architecture.GRAVITON: ["stream-neon"],
    },
    "hpl": {
        Architecture.INTEL: ["hpl-mkl", "hpl-avx512-fma"],
        Architecture.AMD: ["hpl-blis", "hpl-zen4"],
        Architecture.GRAVITON: ["hpl-sve", "hpl-neoverse"],
    },
}


def expand_benchmarks(instance_type: str, benchmarks: Sequence[str]) -> List[str]:
    """Return each base benchmark followed by its variants for this instance."""
    arch = detect_architecture(instance_type)
    expanded: List[str] = []
    for benchmark in benchmarks:
        expanded.append(benchmark)
        expanded.extend(_COMMON_VARIANTS.get(benchmark, []))
        expanded.extend(_ARCH_VARIANTS.get(benchmark, {}).get(arch, []))
    return expanded


def base_suite(label: str) -> str:
    """``stream-avx512`` -> ``stream``."""
    return label.split("-", 1)[0]
