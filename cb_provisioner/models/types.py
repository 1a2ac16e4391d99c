"""Shared provisioning types and value objects."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional

from pydantic import BaseModel, Field

# Families backed by accelerators (GPU, inference, training, FPGA, video).
SPECIALIZED_FAMILY_PREFIXES = ("p", "g", "inf", "trn", "dl", "f", "vt")

_FAMILY_RE = re.compile(r"^(?P<series>[a-z]+)(?P<generation>\d+)(?P<options>[a-z-]*)$")


class Architecture(str, Enum):
    """Processor families a machine image can target."""

    INTEL = "intel"
    AMD = "amd"
    GRAVITON = "graviton"

    @property
    def image_arch(self) -> str:
        """Architecture string used by the provider's image catalog."""
        return "arm64" if self is Architecture.GRAVITON else "x86_64"


class InstanceState(str, Enum):
    """Provider instance states the provisioner reacts to."""

    PENDING = "pending"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"
    STOPPING = "stopping"
    STOPPED = "stopped"


ACTIVE_STATES = (InstanceState.PENDING, InstanceState.RUNNING)
DEAD_STATES = (
    InstanceState.SHUTTING_DOWN,
    InstanceState.TERMINATED,
    InstanceState.STOPPING,
    InstanceState.STOPPED,
)


def instance_family(instance_type: str) -> str:
    """Return the family part of an instance type (``m7i.large`` -> ``m7i``)."""
    return instance_type.split(".", 1)[0]


def instance_generation(instance_type: str) -> Optional[int]:
    """Return the generation digit of the family, if the type is well-formed."""
    match = _FAMILY_RE.match(instance_family(instance_type))
    if not match:
        return None
    return int(match.group("generation"))


def detect_architecture(instance_type: str) -> Architecture:
    """Infer the processor architecture from the family option letters.

    ``m7g``/``c7gn`` are Graviton, ``c7a``/``r6a`` are AMD, everything else is
    treated as Intel.
    """
    family = instance_family(instance_type)
    match = _FAMILY_RE.match(family)
    options = match.group("options") if match else family
    if "g" in options:
        return Architecture.GRAVITON
    if "a" in options:
        return Architecture.AMD
    return Architecture.INTEL


def is_specialized(instance_type: str) -> bool:
    """Return True when the family is accelerator-backed."""
    match = _FAMILY_RE.match(instance_family(instance_type))
    if not match:
        return False
    return match.group("series") in SPECIALIZED_FAMILY_PREFIXES


class QuotaLimit(BaseModel):
    """Per-region admission ceilings."""

    region: str = Field(default="us-east-1", description="Region the ceilings apply to")
    max_per_family: int = Field(
        default=10, ge=0, description="Maximum active instances per instance family"
    )
    max_total: Optional[int] = Field(
        default=None, ge=0, description="Maximum active instances in the region"
    )
    max_specialized: Optional[int] = Field(
        default=None, ge=0, description="Maximum active accelerator-backed instances"
    )
    family_overrides: Dict[str, int] = Field(
        default_factory=dict, description="Per-family ceilings overriding max_per_family"
    )

    model_config = {"frozen": True}

    def family_ceiling(self, family: str) -> int:
        return self.family_overrides.get(family, self.max_per_family)


@dataclass
class LaunchRequest:
    """Input required to create one instance."""

    instance_type: str
    region: str
    image_id: Optional[str] = None
    subnet_id: Optional[str] = None
    security_group_id: Optional[str] = None
    key_name: Optional[str] = None
    instance_profile: Optional[str] = None
    user_data: Optional[str] = None
    terminate_on_shutdown: bool = False
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class InstanceDetails:
    """Snapshot of a provider instance."""

    instance_id: str
    state: str
    instance_type: str = ""
    public_ip: Optional[str] = None
    private_ip: Optional[str] = None
    launch_time: Optional[datetime] = None


@dataclass
class ProvisionedInstance:
    """Provisioned instance plus a teardown hook.

    ``teardown`` runs the hook at most once; failures propagate so the caller
    can record them next to the job's primary outcome.
    """

    instance_id: str
    instance_type: str
    region: str
    image_id: str
    destroy: Optional[Callable[[], None]] = None
    terminated: bool = False

    def teardown(self) -> None:
        """Destroy this instance if it has not been destroyed already."""
        if self.terminated or self.destroy is None:
            return
        self.terminated = True
        self.destroy()
