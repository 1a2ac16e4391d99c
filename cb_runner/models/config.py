"""Benchmark execution request (canonical runner/controller definition)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator

DEFAULT_REGION = "us-east-1"


class BenchmarkConfig(BaseModel):
    """Immutable request to run one benchmark suite on one instance type."""

    instance_type: str = Field(description="Provider instance type, e.g. m7i.large")
    benchmark_suite: str = Field(description="Registered suite identifier, e.g. stream")
    variant: Optional[str] = Field(
        default=None,
        description="Architecture- or feature-specific variant label, e.g. stream-avx512",
    )
    region: str = Field(default=DEFAULT_REGION, description="Provider region")
    subnet_id: Optional[str] = Field(default=None, description="Subnet for the instance")
    security_group_id: Optional[str] = Field(default=None, description="Security group id")
    key_pair_name: Optional[str] = Field(default=None, description="Key pair name")
    instance_profile: Optional[str] = Field(
        default=None, description="Instance profile granting remote-execution and storage access"
    )
    max_retries: int = Field(default=0, ge=0, description="Retry budget for transient failures")
    timeout_seconds: int = Field(
        default=3600, gt=0, description="Execution budget for a single remote command"
    )
    skip_quota_check: bool = Field(default=False, description="Bypass the admission check")
    tags: Dict[str, str] = Field(default_factory=dict, description="Extra instance tags")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _validate_identifiers(self) -> "BenchmarkConfig":
        if not self.instance_type or "." not in self.instance_type:
            raise ValueError(
                f"BenchmarkConfig: instance_type must look like 'family.size', got {self.instance_type!r}"
            )
        if not self.benchmark_suite or not self.benchmark_suite.strip():
            raise ValueError("BenchmarkConfig: 'benchmark_suite' must be non-empty")
        return self

    @property
    def label(self) -> str:
        """Benchmark name including the variant, used for scheduling affinity."""
        return self.variant or self.benchmark_suite

    @property
    def family(self) -> str:
        return self.instance_type.split(".", 1)[0]

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> "BenchmarkConfig":
        return cls.model_validate_json(json_str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchmarkConfig":
        return cls.model_validate(data)

    def save(self, filepath: Path) -> None:
        filepath.write_text(self.to_json())

    @classmethod
    def load(cls, filepath: Path) -> "BenchmarkConfig":
        return cls.from_dict(json.loads(filepath.read_text()))
