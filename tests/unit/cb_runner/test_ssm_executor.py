"""SsmRemoteExecutor polling behaviour."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from cb_common.errors import CancelledError, ExecutionTimeoutError, RemoteExecutionError
from cb_common.stop_token import StopToken
from cb_runner.remote.ssm import SsmRemoteExecutor

pytestmark = pytest.mark.unit_runner


def _invocation(status: str, stdout: str = "", stderr: str = "") -> dict:
    return {
        "Status": status,
        "StandardOutputContent": stdout,
        "StandardErrorContent": stderr,
    }


@pytest.fixture
def client():
    mock = MagicMock()
    mock.send_command.return_value = {"Command": {"CommandId": "cmd-1"}}
    return mock


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def executor(client, sleeps):
    return SsmRemoteExecutor(
        "us-east-1", client, poll_interval=60, max_polls=4, sleep=sleeps.append
    )


def test_success_after_pending(executor, client, sleeps) -> None:
    client.get_command_invocation.side_effect = [
        ClientError({"Error": {"Code": "InvocationDoesNotExist"}}, "GetCommandInvocation"),
        _invocation("InProgress"),
        _invocation("Success", stdout="Triad: 1"),
    ]
    assert executor.execute("i-1", "echo hi") == "Triad: 1"
    assert sleeps == [60, 60]
    kwargs = client.send_command.call_args.kwargs
    assert kwargs["DocumentName"] == "AWS-RunShellScript"
    assert kwargs["Parameters"] == {"commands": ["echo hi"]}
    assert kwargs["TimeoutSeconds"] == 3600


def test_success_with_only_stderr_is_failure(executor, client) -> None:
    client.get_command_invocation.return_value = _invocation("Success", stderr="gcc: not found")
    with pytest.raises(RemoteExecutionError, match="gcc: not found"):
        executor.execute("i-1", "make")


@pytest.mark.parametrize("status", ["Failed", "Cancelled"])
def test_failed_statuses(executor, client, status) -> None:
    client.get_command_invocation.return_value = _invocation(status, stderr="boom")
    with pytest.raises(RemoteExecutionError) as excinfo:
        executor.execute("i-1", "run")
    assert not isinstance(excinfo.value, ExecutionTimeoutError)
    assert excinfo.value.context["status"] == status


def test_timed_out_status(executor, client) -> None:
    client.get_command_invocation.return_value = _invocation("TimedOut")
    with pytest.raises(ExecutionTimeoutError):
        executor.execute("i-1", "run")


def test_poll_ceiling(executor, client, sleeps) -> None:
    client.get_command_invocation.return_value = _invocation("InProgress")
    with pytest.raises(ExecutionTimeoutError, match="4 polls"):
        executor.execute("i-1", "run")
    assert len(sleeps) == 4


def test_cancellation_cancels_remote_command(executor, client) -> None:
    token = StopToken()
    token.request_stop()
    with pytest.raises(CancelledError):
        executor.execute("i-1", "run", stop_token=token)
    client.cancel_command.assert_called_once_with(CommandId="cmd-1", InstanceIds=["i-1"])


def test_send_failure(executor, client) -> None:
    client.send_command.side_effect = ClientError(
        {"Error": {"Code": "InvalidInstanceId"}}, "SendCommand"
    )
    with pytest.raises(RemoteExecutionError):
        executor.execute("i-1", "run")


def test_per_command_timeout_overrides_default(executor, client) -> None:
    client.get_command_invocation.return_value = _invocation("TimedOut")
    with pytest.raises(ExecutionTimeoutError, match="900s"):
        executor.execute("i-1", "hpl", timeout=900)
    assert client.send_command.call_args.kwargs["TimeoutSeconds"] == 900


def test_poll_access_denied_fails_without_waiting(executor, client, sleeps) -> None:
    client.get_command_invocation.side_effect = ClientError(
        {"Error": {"Code": "AccessDeniedException"}}, "GetCommandInvocation"
    )
    with pytest.raises(RemoteExecutionError) as excinfo:
        executor.execute("i-1", "run")
    assert excinfo.value.context["code"] == "AccessDeniedException"
    assert sleeps == []
    assert client.get_command_invocation.call_count == 1
