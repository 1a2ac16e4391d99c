"""Build controller services from CampaignSettings."""

from __future__ import annotations

import logging
from datetime import timedelta
from functools import partial
from typing import Any, Dict, Optional

from cb_common.errors import ConfigurationError
from cb_controller.engine.lifecycle import JobLifecycleController
from cb_controller.models.settings import CampaignSettings
from cb_controller.services.collector import AsyncCollector
from cb_controller.services.job_state import JobStateTracker
from cb_controller.services.launcher import AsyncLauncher
from cb_controller.services.storage import LocalObjectStore, ObjectStore, S3ObjectStore
from cb_provisioner.engine.service import ProvisioningService
from cb_runner.plugin_system.registry import SuiteRegistry
from cb_runner.remote.ssm import SsmRemoteExecutor

logger = logging.getLogger(__name__)


class ControllerContext:
    """Lazily constructed services sharing one registry and one provisioner."""

    def __init__(
        self,
        settings: CampaignSettings,
        *,
        registry: Optional[SuiteRegistry] = None,
        provisioning: Optional[ProvisioningService] = None,
        store: Optional[ObjectStore] = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or SuiteRegistry()
        self.provisioning = provisioning or ProvisioningService(
            quota_limits=settings.quota_limits,
            default_limit=settings.default_quota,
        )
        self._store = store

    @property
    def store(self) -> ObjectStore:
        if self._store is None:
            storage = self.settings.storage
            if storage.bucket:
                self._store = S3ObjectStore(storage.bucket, region=self.settings.region)
            elif storage.local_root:
                self._store = LocalObjectStore(storage.local_root)
            else:
                raise ConfigurationError("Either storage.bucket or storage.local_root is required")
        return self._store

    def job_defaults(self) -> Dict[str, Any]:
        """BenchmarkConfig fields every generated job inherits."""
        defaults: Dict[str, Any] = self.settings.network.model_dump(exclude_none=True)
        if self.settings.tags:
            defaults["tags"] = dict(self.settings.tags)
        return defaults

    def tracker(self) -> JobStateTracker:
        return JobStateTracker(self.store, root=self.settings.storage.root_prefix)

    def lifecycle_controller(self) -> JobLifecycleController:
        lifecycle = self.settings.lifecycle
        executor_factory = partial(
            _build_executor,
            execution_timeout=lifecycle.execution_timeout_seconds,
            poll_interval=lifecycle.remote_poll_seconds,
            max_polls=lifecycle.remote_max_polls,
        )
        return JobLifecycleController(
            self.provisioning,
            executor_factory=executor_factory,
            registry=self.registry,
            iterations=lifecycle.iterations,
            ready_timeout=lifecycle.ready_timeout_seconds,
            ready_poll_interval=lifecycle.ready_poll_seconds,
            settle_delay=lifecycle.settle_delay_seconds,
        )

    def launcher(self) -> AsyncLauncher:
        bucket = self.settings.storage.bucket
        if not bucket:
            raise ConfigurationError("Asynchronous launches require storage.bucket")
        return AsyncLauncher(
            self.tracker(),
            self.provisioning,
            bucket,
            registry=self.registry,
            failsafe_buffer=timedelta(seconds=self.settings.async_jobs.failsafe_buffer_seconds),
            iterations=self.settings.lifecycle.iterations,
        )

    def collector(self) -> AsyncCollector:
        return AsyncCollector(
            self.tracker(),
            registry=self.registry,
            lifetime_buffer=timedelta(seconds=self.settings.async_jobs.failsafe_buffer_seconds),
        )


def _build_executor(
    region: str, *, execution_timeout: int, poll_interval: float, max_polls: int
) -> SsmRemoteExecutor:
    return SsmRemoteExecutor(
        region,
        execution_timeout=execution_timeout,
        poll_interval=poll_interval,
        max_polls=max_polls,
    )
