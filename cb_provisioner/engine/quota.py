"""Admission control against per-region instance ceilings."""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Protocol

from cb_common.errors import CapacityExhaustedError
from cb_provisioner.models.types import (
    SPECIALIZED_FAMILY_PREFIXES,
    QuotaLimit,
    instance_family,
    is_specialized,
)
from cb_provisioner.providers.ec2 import specialized_type_patterns

logger = logging.getLogger(__name__)


class InstanceCounter(Protocol):
    region: str

    def count_active_instances(self, type_patterns=None) -> int: ...


class QuotaGuard:
    """Refuse launches once a family, region or accelerator ceiling is reached.

    The ceilings are a local policy, not the provider's real quota: the
    default of 10 active instances per family is a placeholder that should be
    tuned per account through ``QuotaLimit`` entries.
    """

    def __init__(
        self,
        limits: Optional[Mapping[str, QuotaLimit]] = None,
        default_limit: Optional[QuotaLimit] = None,
    ) -> None:
        self._limits = dict(limits or {})
        self._default = default_limit or QuotaLimit()

    def limit_for(self, region: str) -> QuotaLimit:
        return self._limits.get(region, self._default)

    def check(self, provider: InstanceCounter, instance_type: str) -> None:
        """Raise CapacityExhaustedError when launching would exceed a ceiling."""
        region = provider.region
        limit = self.limit_for(region)
        family = instance_family(instance_type)

        ceiling = limit.family_ceiling(family)
        active = provider.count_active_instances([f"{family}.*"])
        logger.debug("Admission %s in %s: %d/%d active", family, region, active, ceiling)
        if active >= ceiling:
            raise CapacityExhaustedError(
                f"{active} active {family} instances in {region} (ceiling {ceiling})",
                context={"family": family, "region": region, "active": active, "ceiling": ceiling},
            )

        if limit.max_total is not None:
            total = provider.count_active_instances()
            if total >= limit.max_total:
                raise CapacityExhaustedError(
                    f"{total} active instances in {region} (ceiling {limit.max_total})",
                    context={"region": region, "active": total, "ceiling": limit.max_total},
                )

        if limit.max_specialized is not None and is_specialized(instance_type):
            specialized = provider.count_active_instances(
                specialized_type_patterns(SPECIALIZED_FAMILY_PREFIXES)
            )
            if specialized >= limit.max_specialized:
                raise CapacityExhaustedError(
                    f"{specialized} active accelerator instances in {region} "
                    f"(ceiling {limit.max_specialized})",
                    context={
                        "region": region,
                        "active": specialized,
                        "ceiling": limit.max_specialized,
                    },
                )
        logger.info("Admission passed for %s in %s", instance_type, region)
