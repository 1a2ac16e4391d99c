"""Ec2Provider tests against a mocked boto3 client."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from cb_common.errors import (
    CancelledError,
    CapacityExhaustedError,
    ProvisioningError,
    ReadinessTimeoutError,
)
from cb_common.stop_token import StopToken
from cb_provisioner.models.types import Architecture, LaunchRequest
from cb_provisioner.providers.ec2 import Ec2Provider

pytestmark = pytest.mark.unit_provisioner


def _client_error(code: str, operation: str = "RunInstances") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def _describe(state: str, instance_id: str = "i-123") -> dict:
    return {
        "Reservations": [
            {
                "Instances": [
                    {
                        "InstanceId": instance_id,
                        "State": {"Name": state},
                        "InstanceType": "m7i.large",
                        "PublicIpAddress": "1.2.3.4",
                        "PrivateIpAddress": "10.0.0.1",
                    }
                ]
            }
        ]
    }


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def provider(client, clock):
    return Ec2Provider("us-east-1", client, sleep=clock.sleep, clock=clock)


def test_count_active_instances_sums_pages(provider, client) -> None:
    paginator = MagicMock()
    paginator.paginate.return_value = [
        {"Reservations": [{"Instances": [{}, {}]}]},
        {"Reservations": [{"Instances": [{}]}]},
    ]
    client.get_paginator.return_value = paginator

    assert provider.count_active_instances(["m7i.*"]) == 3
    filters = paginator.paginate.call_args.kwargs["Filters"]
    assert filters[0]["Values"] == ["pending", "running"]
    assert filters[1] == {"Name": "instance-type", "Values": ["m7i.*"]}


def test_select_image_picks_newest(provider, client) -> None:
    client.describe_images.return_value = {
        "Images": [
            {"ImageId": "ami-old", "CreationDate": "2023-01-01T00:00:00.000Z"},
            {"ImageId": "ami-new", "CreationDate": "2024-06-01T00:00:00.000Z"},
        ]
    }
    assert provider.select_image(Architecture.GRAVITON) == "ami-new"
    filters = client.describe_images.call_args.kwargs["Filters"]
    assert {"Name": "architecture", "Values": ["arm64"]} in filters


def test_select_image_without_results(provider, client) -> None:
    client.describe_images.return_value = {"Images": []}
    with pytest.raises(ProvisioningError):
        provider.select_image(Architecture.INTEL)


def test_launch_builds_request_and_teardown(provider, client) -> None:
    client.run_instances.return_value = {"Instances": [{"InstanceId": "i-abc"}]}
    request = LaunchRequest(
        instance_type="m7i.large",
        region="us-east-1",
        image_id="ami-1",
        subnet_id="subnet-1",
        instance_profile="bench-profile",
        user_data="#!/bin/bash",
        terminate_on_shutdown=True,
        tags={"JobId": "bench-1"},
    )
    instance = provider.launch(request)

    params = client.run_instances.call_args.kwargs
    assert params["IamInstanceProfile"] == {"Name": "bench-profile"}
    assert params["InstanceInitiatedShutdownBehavior"] == "terminate"
    assert params["TagSpecifications"][0]["Tags"] == [{"Key": "JobId", "Value": "bench-1"}]
    assert instance.instance_id == "i-abc"

    instance.teardown()
    instance.teardown()
    client.terminate_instances.assert_called_once_with(InstanceIds=["i-abc"])


@pytest.mark.parametrize("code", ["InsufficientInstanceCapacity", "VcpuLimitExceeded"])
def test_launch_capacity_errors(provider, client, code) -> None:
    client.run_instances.side_effect = _client_error(code)
    with pytest.raises(CapacityExhaustedError):
        provider.launch(LaunchRequest("m7i.large", "us-east-1", image_id="ami-1"))


def test_launch_other_errors(provider, client) -> None:
    client.run_instances.side_effect = _client_error("InvalidSubnetID.NotFound")
    with pytest.raises(ProvisioningError) as excinfo:
        provider.launch(LaunchRequest("m7i.large", "us-east-1", image_id="ami-1"))
    assert not isinstance(excinfo.value, CapacityExhaustedError)


def test_terminate_transport_error_becomes_provisioning_error(provider, client) -> None:
    client.terminate_instances.side_effect = EndpointConnectionError(
        endpoint_url="https://ec2.us-east-1.amazonaws.com"
    )
    with pytest.raises(ProvisioningError) as excinfo:
        provider.terminate("i-abc")
    assert excinfo.value.context["code"] == "EndpointConnectionError"


def test_launch_transport_error_becomes_provisioning_error(provider, client) -> None:
    client.run_instances.side_effect = EndpointConnectionError(
        endpoint_url="https://ec2.us-east-1.amazonaws.com"
    )
    with pytest.raises(ProvisioningError) as excinfo:
        provider.launch(LaunchRequest("m7i.large", "us-east-1", image_id="ami-1"))
    assert not isinstance(excinfo.value, CapacityExhaustedError)


def test_wait_until_running_tolerates_not_found(provider, client) -> None:
    client.describe_instances.side_effect = [
        _client_error("InvalidInstanceID.NotFound", "DescribeInstances"),
        _describe("pending"),
        _describe("running"),
    ]
    details = provider.wait_until_running("i-123", timeout=60, poll_interval=5)
    assert details.public_ip == "1.2.3.4"
    assert client.describe_instances.call_count == 3


def test_wait_until_running_times_out(provider, client, clock) -> None:
    client.describe_instances.return_value = _describe("pending")
    with pytest.raises(ReadinessTimeoutError):
        provider.wait_until_running("i-123", timeout=20, poll_interval=5)
    assert clock.now >= 20


def test_wait_until_running_dead_instance(provider, client) -> None:
    client.describe_instances.return_value = _describe("terminated")
    with pytest.raises(ProvisioningError, match="terminated"):
        provider.wait_until_running("i-123", timeout=60)


def test_wait_until_running_honours_stop_token(provider, client) -> None:
    token = StopToken()
    token.request_stop()
    with pytest.raises(CancelledError):
        provider.wait_until_running("i-123", timeout=60, stop_token=token)
    client.describe_instances.assert_not_called()
