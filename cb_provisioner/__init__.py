"""Instance provisioning and admission control for cloudbench."""

from cb_provisioner.api import (  # noqa: F401
    Architecture,
    Ec2Provider,
    LaunchRequest,
    ProvisionedInstance,
    ProvisioningService,
    QuotaGuard,
    QuotaLimit,
    detect_architecture,
)

__all__ = [
    "Architecture",
    "Ec2Provider",
    "LaunchRequest",
    "ProvisionedInstance",
    "ProvisioningService",
    "QuotaGuard",
    "QuotaLimit",
    "detect_architecture",
]
