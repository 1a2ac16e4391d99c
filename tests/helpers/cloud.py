"""Fakes for provisioning and remote execution used across unit tests."""

from __future__ import annotations

from typing import List, Optional

from cb_common.errors import CBError
from cb_provisioner.models.types import InstanceDetails, LaunchRequest, ProvisionedInstance


def stream_output(triad: float, copy: float = 40000.0) -> str:
    return "\n".join(
        [
            "Function    Best Rate MB/s  Avg time     Min time     Max time",
            f"Copy:       {copy:.1f}     0.031100     0.031040     0.031200",
            f"Triad:      {triad:.1f}     0.045830     0.045810     0.045900",
        ]
    )


class DummyProvisioning:
    """Records every call and hands out instances with counted teardown."""

    def __init__(
        self,
        admit_error: Optional[CBError] = None,
        provision_error: Optional[CBError] = None,
        ready_error: Optional[CBError] = None,
        teardown_error: Optional[Exception] = None,
    ) -> None:
        self.admit_error = admit_error
        self.provision_error = provision_error
        self.ready_error = ready_error
        self.teardown_error = teardown_error
        self.calls: List[str] = []
        self.requests: List[LaunchRequest] = []
        self.destroyed: List[str] = []

    def admit(self, instance_type: str, region: str) -> None:
        self.calls.append("admit")
        if self.admit_error:
            raise self.admit_error

    def provision(self, request: LaunchRequest) -> ProvisionedInstance:
        self.calls.append("provision")
        self.requests.append(request)
        if self.provision_error:
            raise self.provision_error
        instance_id = f"i-{len(self.requests):04d}"
        return ProvisionedInstance(
            instance_id=instance_id,
            instance_type=request.instance_type,
            region=request.region,
            image_id="ami-1",
            destroy=lambda: self._destroy(instance_id),
        )

    def _destroy(self, instance_id: str) -> None:
        self.destroyed.append(instance_id)
        if self.teardown_error:
            raise self.teardown_error

    def wait_until_running(self, instance, *, timeout, poll_interval=5.0, stop_token=None):
        self.calls.append("wait")
        if self.ready_error:
            raise self.ready_error
        return InstanceDetails(
            instance_id=instance.instance_id,
            state="running",
            public_ip="1.2.3.4",
            private_ip="10.0.0.1",
        )


class ScriptedExecutor:
    """Returns (or raises) the scripted outcomes in order."""

    def __init__(self, outcomes) -> None:
        self.outcomes = list(outcomes)
        self.commands: List[str] = []
        self.timeouts: List[Optional[int]] = []

    def execute(self, instance_id: str, command: str, stop_token=None, timeout=None) -> str:
        self.commands.append(command)
        self.timeouts.append(timeout)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome
