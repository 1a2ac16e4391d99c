"""Run benchmark commands on instances through the SSM agent."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from cb_common.errors import (
    CancelledError,
    ExecutionTimeoutError,
    RemoteExecutionError,
    wrap_error,
)
from cb_common.stop_token import StopToken

logger = logging.getLogger(__name__)

SHELL_DOCUMENT = "AWS-RunShellScript"
DEFAULT_EXECUTION_TIMEOUT = 3600
DEFAULT_POLL_INTERVAL = 60.0
DEFAULT_MAX_POLLS = 120

_WAITING_STATUSES = frozenset({"Pending", "InProgress", "Delayed", "Cancelling"})
_FAILED_STATUSES = frozenset({"Failed", "Cancelled"})


class RemoteExecutor(Protocol):
    def execute(
        self,
        instance_id: str,
        command: str,
        stop_token: Optional[StopToken] = None,
        timeout: Optional[int] = None,
    ) -> str: ...


class SsmRemoteExecutor:
    """Send a shell script to one instance and poll until it settles.

    Polling runs every ``poll_interval`` seconds for at most ``max_polls``
    attempts (about two hours with the defaults); invocations the provider
    has not registered yet are treated as still pending.
    """

    def __init__(
        self,
        region: str,
        client: Any = None,
        *,
        execution_timeout: int = DEFAULT_EXECUTION_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: int = DEFAULT_MAX_POLLS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.region = region
        self._client = client or boto3.client("ssm", region_name=region)
        self.execution_timeout = execution_timeout
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._sleep = sleep

    def execute(
        self,
        instance_id: str,
        command: str,
        stop_token: Optional[StopToken] = None,
        timeout: Optional[int] = None,
    ) -> str:
        """Run ``command`` and return its stdout; ``timeout`` overrides the default budget."""
        budget = timeout or self.execution_timeout
        command_id = self._send(instance_id, command, budget)
        logger.debug("Sent command %s to %s", command_id, instance_id)
        try:
            return self._wait(instance_id, command_id, stop_token, budget)
        except CancelledError:
            self._cancel(instance_id, command_id)
            raise

    def _send(self, instance_id: str, command: str, budget: int) -> str:
        try:
            response = self._client.send_command(
                InstanceIds=[instance_id],
                DocumentName=SHELL_DOCUMENT,
                Parameters={"commands": [command]},
                TimeoutSeconds=budget,
            )
        except (BotoCoreError, ClientError) as exc:
            raise wrap_error(
                RemoteExecutionError,
                f"Failed to send command to {instance_id}",
                context={"instance_id": instance_id},
                cause=exc,
            )
        return response["Command"]["CommandId"]

    def _wait(
        self,
        instance_id: str,
        command_id: str,
        stop_token: Optional[StopToken],
        budget: int,
    ) -> str:
        context = {"instance_id": instance_id, "command_id": command_id}
        for attempt in range(1, self.max_polls + 1):
            if stop_token is not None:
                stop_token.raise_if_stopped(f"command {command_id}")
            try:
                result = self._client.get_command_invocation(
                    CommandId=command_id, InstanceId=instance_id
                )
            except ClientError as exc:
                code = exc.response.get("Error", {}).get("Code", "")
                if code != "InvocationDoesNotExist":
                    raise wrap_error(
                        RemoteExecutionError,
                        f"Failed to poll command {command_id}",
                        context={**context, "code": code},
                        cause=exc,
                    )
                logger.debug("Invocation %s not registered yet", command_id)
                result = None
            except BotoCoreError as exc:
                raise wrap_error(
                    RemoteExecutionError,
                    f"Failed to poll command {command_id}",
                    context={**context, "code": exc.__class__.__name__},
                    cause=exc,
                )

            if result is not None:
                status = result.get("Status", "")
                stdout = result.get("StandardOutputContent") or ""
                stderr = result.get("StandardErrorContent") or ""
                if status == "Success":
                    if not stdout and stderr:
                        raise RemoteExecutionError(
                            f"Command produced only error output: {stderr.strip()}",
                            context=context,
                        )
                    return stdout
                if status in _FAILED_STATUSES:
                    raise RemoteExecutionError(
                        f"Command {status.lower()}: {stderr.strip() or 'no error output'}",
                        context={**context, "status": status},
                    )
                if status == "TimedOut":
                    raise ExecutionTimeoutError(
                        f"Command exceeded its {budget}s execution budget",
                        context={**context, "status": status},
                    )
                if status not in _WAITING_STATUSES:
                    logger.warning("Unknown command status %s, still waiting", status)
                else:
                    logger.debug("Command %s status %s (poll %d)", command_id, status, attempt)

            if stop_token is not None:
                stop_token.wait(self.poll_interval)
            else:
                self._sleep(self.poll_interval)

        raise ExecutionTimeoutError(
            f"Command still running after {self.max_polls} polls",
            context={**context, "polls": self.max_polls},
        )

    def _cancel(self, instance_id: str, command_id: str) -> None:
        try:
            self._client.cancel_command(CommandId=command_id, InstanceIds=[instance_id])
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Failed to cancel command %s: %s", command_id, exc)
