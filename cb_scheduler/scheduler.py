"""Batch scheduler facade: plan a campaign, then execute it."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Sequence

from cb_common.errors import ConfigurationError
from cb_common.stop_token import StopToken
from cb_controller.engine.lifecycle import JobLifecycleController
from cb_controller.services.context import ControllerContext
from cb_runner.plugin_system.registry import SuiteRegistry

from .expansion import base_suite
from .executor import PlanExecutor
from .models import CampaignReport, SchedulerConfig, WeeklyPlan
from .planner import plan_campaign


class BatchScheduler:
    """Packs instance-type x benchmark jobs into weekly windows and runs them."""

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        controller: Optional[JobLifecycleController] = None,
        registry: Optional[SuiteRegistry] = None,
        config_defaults: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.config = config or SchedulerConfig()
        self.controller = controller
        self.registry = registry or SuiteRegistry()
        self.config_defaults: Dict[str, Any] = dict(config_defaults or {})

    @classmethod
    def from_context(
        cls, context: ControllerContext, config: Optional[SchedulerConfig] = None
    ) -> "BatchScheduler":
        """Scheduler wired to the context's controller, registry and job defaults."""
        settings = context.settings
        if config is None:
            config = SchedulerConfig(
                max_concurrent_jobs=settings.max_concurrent_jobs,
                preferred_regions=[settings.region],
            )
        return cls(
            config,
            controller=context.lifecycle_controller(),
            registry=context.registry,
            config_defaults=context.job_defaults(),
        )

    def generate_campaign(
        self,
        instance_types: Sequence[str],
        benchmark_suites: Sequence[str],
        *,
        start: Optional[datetime] = None,
    ) -> WeeklyPlan:
        """Build a plan; unknown suites or empty inputs fail before any job exists."""
        if not instance_types:
            raise ConfigurationError("At least one instance type is required")
        if not benchmark_suites:
            raise ConfigurationError("At least one benchmark suite is required")
        self.registry.validate(sorted({base_suite(name) for name in benchmark_suites}))
        return plan_campaign(
            self.config,
            instance_types,
            benchmark_suites,
            start=start,
            config_defaults=self.config_defaults,
        )

    def execute_plan(
        self, plan: WeeklyPlan, stop_token: Optional[StopToken] = None
    ) -> CampaignReport:
        if self.controller is None:
            raise ConfigurationError("BatchScheduler needs a lifecycle controller to execute plans")
        executor = PlanExecutor(
            self.controller, max_concurrent_jobs=self.config.max_concurrent_jobs
        )
        return executor.execute(plan, stop_token)
