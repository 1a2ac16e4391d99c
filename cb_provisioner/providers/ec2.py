"""Provision EC2 instances for benchmark jobs."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from cb_common.errors import (
    CapacityExhaustedError,
    ProvisioningError,
    ReadinessTimeoutError,
    wrap_error,
)
from cb_common.stop_token import StopToken
from cb_provisioner.models.types import (
    ACTIVE_STATES,
    DEAD_STATES,
    Architecture,
    InstanceDetails,
    InstanceState,
    LaunchRequest,
    ProvisionedInstance,
)

logger = logging.getLogger(__name__)

IMAGE_OWNER = "amazon"
IMAGE_NAME_PATTERN = "amzn2-ami-hvm-*"

# Provider error codes that mean "no room right now" rather than misconfiguration.
CAPACITY_ERROR_CODES = frozenset(
    {
        "InsufficientInstanceCapacity",
        "InstanceLimitExceeded",
        "VcpuLimitExceeded",
    }
)
_NOT_FOUND_CODES = frozenset({"InvalidInstanceID.NotFound"})


def _error_code(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "")
    return exc.__class__.__name__


class Ec2Provider:
    """Thin, testable wrapper over the EC2 API for a single region."""

    def __init__(
        self,
        region: str,
        client: Any = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.region = region
        self._client = client or boto3.client("ec2", region_name=region)
        self._sleep = sleep
        self._clock = clock

    # --- admission queries -------------------------------------------------

    def count_active_instances(self, type_patterns: Optional[Iterable[str]] = None) -> int:
        """Count pending/running instances, optionally restricted by type wildcard."""
        filters: list[dict[str, Any]] = [
            {
                "Name": "instance-state-name",
                "Values": [state.value for state in ACTIVE_STATES],
            }
        ]
        if type_patterns is not None:
            filters.append({"Name": "instance-type", "Values": list(type_patterns)})
        count = 0
        paginator = self._client.get_paginator("describe_instances")
        try:
            for page in paginator.paginate(Filters=filters):
                for reservation in page.get("Reservations", []):
                    count += len(reservation.get("Instances", []))
        except (BotoCoreError, ClientError) as exc:
            raise wrap_error(
                ProvisioningError,
                "Failed to query active instances",
                context={"region": self.region, "code": _error_code(exc)},
                cause=exc,
            )
        return count

    # --- images ------------------------------------------------------------

    def select_image(self, architecture: Architecture) -> str:
        """Return the newest available Amazon Linux image for the architecture."""
        try:
            response = self._client.describe_images(
                Owners=[IMAGE_OWNER],
                Filters=[
                    {"Name": "name", "Values": [IMAGE_NAME_PATTERN]},
                    {"Name": "architecture", "Values": [architecture.image_arch]},
                    {"Name": "state", "Values": ["available"]},
                ],
            )
        except (BotoCoreError, ClientError) as exc:
            raise wrap_error(
                ProvisioningError,
                "Failed to describe machine images",
                context={"region": self.region, "architecture": architecture.value},
                cause=exc,
            )
        images = response.get("Images", [])
        if not images:
            raise ProvisioningError(
                f"No machine image found for architecture {architecture.image_arch}",
                context={"region": self.region, "architecture": architecture.value},
            )
        newest = max(images, key=lambda image: image.get("CreationDate", ""))
        logger.debug("Selected image %s for %s", newest["ImageId"], architecture.value)
        return newest["ImageId"]

    # --- lifecycle ---------------------------------------------------------

    def launch(self, request: LaunchRequest) -> ProvisionedInstance:
        """Create one instance; capacity errors become CapacityExhaustedError."""
        if not request.image_id:
            raise ProvisioningError(
                "Launch request has no image id",
                context={"instance_type": request.instance_type},
            )
        params = self._launch_params(request)
        try:
            response = self._client.run_instances(**params)
        except (BotoCoreError, ClientError) as exc:
            code = _error_code(exc)
            context = {
                "instance_type": request.instance_type,
                "region": request.region,
                "code": code,
            }
            if code in CAPACITY_ERROR_CODES:
                raise wrap_error(
                    CapacityExhaustedError,
                    f"Provider capacity exhausted for {request.instance_type}",
                    context=context,
                    cause=exc,
                )
            raise wrap_error(
                ProvisioningError,
                f"Failed to launch {request.instance_type}: {exc}",
                context=context,
                cause=exc,
            )
        instances = response.get("Instances", [])
        if not instances:
            raise ProvisioningError(
                "Provider returned no instances",
                context={"instance_type": request.instance_type},
            )
        instance_id = instances[0]["InstanceId"]
        logger.info("Launched %s (%s) in %s", instance_id, request.instance_type, self.region)
        return ProvisionedInstance(
            instance_id=instance_id,
            instance_type=request.instance_type,
            region=self.region,
            image_id=request.image_id,
            destroy=lambda iid=instance_id: self.terminate(iid),
        )

    def _launch_params(self, request: LaunchRequest) -> dict[str, Any]:
        params: dict[str, Any] = {
            "ImageId": request.image_id,
            "InstanceType": request.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
        }
        if request.subnet_id:
            params["SubnetId"] = request.subnet_id
        if request.security_group_id:
            params["SecurityGroupIds"] = [request.security_group_id]
        if request.key_name:
            params["KeyName"] = request.key_name
        if request.instance_profile:
            params["IamInstanceProfile"] = {"Name": request.instance_profile}
        if request.user_data:
            params["UserData"] = request.user_data
        if request.terminate_on_shutdown:
            params["InstanceInitiatedShutdownBehavior"] = "terminate"
        if request.tags:
            params["TagSpecifications"] = [
                {
                    "ResourceType": "instance",
                    "Tags": [{"Key": k, "Value": v} for k, v in request.tags.items()],
                }
            ]
        return params

    def describe(self, instance_id: str) -> InstanceDetails:
        response = self._client.describe_instances(InstanceIds=[instance_id])
        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                return InstanceDetails(
                    instance_id=instance["InstanceId"],
                    state=instance.get("State", {}).get("Name", ""),
                    instance_type=instance.get("InstanceType", ""),
                    public_ip=instance.get("PublicIpAddress"),
                    private_ip=instance.get("PrivateIpAddress"),
                    launch_time=instance.get("LaunchTime"),
                )
        raise ProvisioningError(
            f"Instance {instance_id} not found", context={"instance_id": instance_id}
        )

    def wait_until_running(
        self,
        instance_id: str,
        *,
        timeout: float,
        poll_interval: float = 5.0,
        stop_token: Optional[StopToken] = None,
    ) -> InstanceDetails:
        """Block until the instance is running.

        Raises ReadinessTimeoutError after ``timeout`` seconds, ProvisioningError
        if the instance dies first, and CancelledError on stop requests.
        """
        deadline = self._clock() + timeout
        while True:
            if stop_token is not None:
                stop_token.raise_if_stopped(f"wait for {instance_id}")
            try:
                details = self.describe(instance_id)
            except (BotoCoreError, ClientError) as exc:
                if _error_code(exc) not in _NOT_FOUND_CODES:
                    raise wrap_error(
                        ProvisioningError,
                        f"Failed to describe {instance_id}",
                        context={"instance_id": instance_id},
                        cause=exc,
                    )
                details = None
            if details is not None:
                if details.state == InstanceState.RUNNING.value:
                    logger.info("Instance %s is running", instance_id)
                    return details
                if details.state in {state.value for state in DEAD_STATES}:
                    raise ProvisioningError(
                        f"Instance {instance_id} entered state {details.state} before running",
                        context={"instance_id": instance_id, "state": details.state},
                    )
            if self._clock() >= deadline:
                raise ReadinessTimeoutError(
                    f"Instance {instance_id} not running after {timeout:.0f}s",
                    context={"instance_id": instance_id, "timeout": timeout},
                )
            if stop_token is not None:
                stop_token.wait(poll_interval)
            else:
                self._sleep(poll_interval)

    def terminate(self, instance_id: str) -> None:
        try:
            self._client.terminate_instances(InstanceIds=[instance_id])
        except (BotoCoreError, ClientError) as exc:
            raise wrap_error(
                ProvisioningError,
                f"Failed to terminate {instance_id}",
                context={"instance_id": instance_id, "code": _error_code(exc)},
                cause=exc,
            )
        logger.info("Terminated %s", instance_id)


def specialized_type_patterns(prefixes: Iterable[str]) -> List[str]:
    """Build EC2 type wildcards for accelerator-backed families."""
    return [f"{prefix}*" for prefix in prefixes]
