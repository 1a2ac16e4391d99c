"""Campaign-wide settings loaded from YAML and the environment."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from cb_common.config.env import parse_int_env, parse_tags_env
from cb_common.errors import ConfigurationError
from cb_provisioner.models.types import QuotaLimit
from cb_runner.models.config import DEFAULT_REGION


class StorageSettings(BaseModel):
    """Where durable job state lives."""

    bucket: Optional[str] = Field(default=None, description="S3 bucket for job markers and results")
    local_root: Optional[Path] = Field(
        default=None, description="Directory used instead of a bucket (offline runs)"
    )
    root_prefix: str = Field(default="benchmarks", description="Campaign root namespace")


class NetworkSettings(BaseModel):
    """Default network placement applied to generated jobs."""

    subnet_id: Optional[str] = None
    security_group_id: Optional[str] = None
    key_pair_name: Optional[str] = None
    instance_profile: Optional[str] = None


class LifecycleSettings(BaseModel):
    """Timings for the synchronous job path."""

    iterations: int = Field(default=5, ge=5, description="Remote iterations per job")
    ready_timeout_seconds: float = Field(default=600.0, gt=0)
    ready_poll_seconds: float = Field(default=15.0, gt=0)
    settle_delay_seconds: float = Field(default=60.0, ge=0)
    remote_poll_seconds: float = Field(default=60.0, gt=0)
    remote_max_polls: int = Field(default=120, gt=0)
    execution_timeout_seconds: int = Field(default=3600, gt=0)


class AsyncSettings(BaseModel):
    """Limits for fire-and-forget jobs."""

    max_runtime_seconds: int = Field(default=7200, gt=0)
    failsafe_buffer_seconds: int = Field(default=3600, ge=0)
    check_interval_seconds: float = Field(default=300.0, gt=0)


class CampaignSettings(BaseModel):
    """Top-level configuration for a benchmarking campaign."""

    region: str = Field(default=DEFAULT_REGION, description="Default provider region")
    storage: StorageSettings = Field(default_factory=StorageSettings)
    network: NetworkSettings = Field(default_factory=NetworkSettings)
    quota_limits: Dict[str, QuotaLimit] = Field(
        default_factory=dict, description="Admission ceilings keyed by region"
    )
    default_quota: QuotaLimit = Field(default_factory=QuotaLimit)
    lifecycle: LifecycleSettings = Field(default_factory=LifecycleSettings)
    async_jobs: AsyncSettings = Field(default_factory=AsyncSettings)
    max_concurrent_jobs: int = Field(default=5, gt=0, description="Simultaneous instances")
    tags: Dict[str, str] = Field(default_factory=dict, description="Tags added to every instance")

    @model_validator(mode="after")
    def _align_quota_regions(self) -> "CampaignSettings":
        for region, limit in list(self.quota_limits.items()):
            if limit.region != region:
                self.quota_limits[region] = limit.model_copy(update={"region": region})
        return self

    @classmethod
    def load(cls, path: Path) -> "CampaignSettings":
        """Read settings from a YAML file; raises ConfigurationError."""
        try:
            raw = yaml.safe_load(Path(path).read_text()) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(
                f"Cannot read settings file {path}", context={"path": path}, cause=exc
            )
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CampaignSettings":
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid campaign settings: {exc}", cause=exc)

    def with_env_overrides(self, environ: Optional[Dict[str, str]] = None) -> "CampaignSettings":
        """Apply ``CB_*`` environment overrides on top of these settings."""
        env = os.environ if environ is None else environ
        data = self.model_dump()
        if env.get("CB_REGION"):
            data["region"] = env["CB_REGION"]
        if env.get("CB_BUCKET"):
            data["storage"]["bucket"] = env["CB_BUCKET"]
        concurrency = parse_int_env(env.get("CB_MAX_CONCURRENT_JOBS"), minimum=1)
        if concurrency is not None:
            data["max_concurrent_jobs"] = concurrency
        max_runtime = parse_int_env(env.get("CB_MAX_RUNTIME_SECONDS"), minimum=1)
        if max_runtime is not None:
            data["async_jobs"]["max_runtime_seconds"] = max_runtime
        data["tags"].update(parse_tags_env(env.get("CB_TAGS")))
        return self.from_dict(data)
