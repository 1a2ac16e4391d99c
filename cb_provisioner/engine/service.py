"""Facade that routes provisioning requests to a per-region provider."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Mapping, Optional

from cb_common.stop_token import StopToken
from cb_provisioner.engine.quota import QuotaGuard
from cb_provisioner.models.types import (
    InstanceDetails,
    LaunchRequest,
    ProvisionedInstance,
    QuotaLimit,
    detect_architecture,
)
from cb_provisioner.providers.ec2 import Ec2Provider

logger = logging.getLogger(__name__)


class ProvisioningService:
    """Admit, launch, wait for and destroy instances across regions."""

    def __init__(
        self,
        quota_limits: Optional[Mapping[str, QuotaLimit]] = None,
        default_limit: Optional[QuotaLimit] = None,
        provider_factory: Callable[[str], Ec2Provider] = Ec2Provider,
    ) -> None:
        self.quota = QuotaGuard(quota_limits, default_limit)
        self._provider_factory = provider_factory
        self._providers: Dict[str, Ec2Provider] = {}
        self._lock = threading.Lock()

    def provider(self, region: str) -> Ec2Provider:
        with self._lock:
            if region not in self._providers:
                self._providers[region] = self._provider_factory(region)
            return self._providers[region]

    def admit(self, instance_type: str, region: str) -> None:
        """Run the quota check; raises CapacityExhaustedError."""
        self.quota.check(self.provider(region), instance_type)

    def provision(self, request: LaunchRequest) -> ProvisionedInstance:
        """Pick an image for the instance's architecture and launch it."""
        provider = self.provider(request.region)
        if not request.image_id:
            request.image_id = provider.select_image(detect_architecture(request.instance_type))
        return provider.launch(request)

    def wait_until_running(
        self,
        instance: ProvisionedInstance,
        *,
        timeout: float,
        poll_interval: float = 5.0,
        stop_token: Optional[StopToken] = None,
    ) -> InstanceDetails:
        return self.provider(instance.region).wait_until_running(
            instance.instance_id,
            timeout=timeout,
            poll_interval=poll_interval,
            stop_token=stop_token,
        )

    def terminate(self, region: str, instance_id: str) -> None:
        self.provider(region).terminate(instance_id)
