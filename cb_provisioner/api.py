"""Public provisioning API surface."""

from cb_provisioner.engine.quota import QuotaGuard
from cb_provisioner.engine.service import ProvisioningService
from cb_provisioner.models.types import (
    Architecture,
    InstanceDetails,
    InstanceState,
    LaunchRequest,
    ProvisionedInstance,
    QuotaLimit,
    detect_architecture,
    instance_family,
    instance_generation,
    is_specialized,
)
from cb_provisioner.providers.ec2 import CAPACITY_ERROR_CODES, Ec2Provider

__all__ = [
    "Architecture",
    "CAPACITY_ERROR_CODES",
    "Ec2Provider",
    "InstanceDetails",
    "InstanceState",
    "LaunchRequest",
    "ProvisionedInstance",
    "ProvisioningService",
    "QuotaGuard",
    "QuotaLimit",
    "detect_architecture",
    "instance_family",
    "instance_generation",
    "is_specialized",
]
