"""Tests for providers and the provider registry."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from statelock.errors import ConfigurationError, ProviderError
from statelock.models import ResourceDescriptor, ResourceSpec
from statelock.providers import EC2Provider, NullProvider, ProviderRegistry, default_registry


def _ec2_client():
    ec2 = MagicMock()
    ec2.run_instances.return_value = {"Instances": [{"InstanceId": "i-0abc"}]}
    ec2.describe_instances.return_value = {
        "Reservations": [{"Instances": [{
            "InstanceId": "i-0abc",
            "State": {"Name": "running"},
            "PublicIpAddress": "54.1.2.3",
            "PrivateIpAddress": "10.0.0.5",
            "Placement": {"AvailabilityZone": "us-east-1a"},
        }]}]
    }
    return ec2


@pytest.fixture
def web_spec():
    return ResourceSpec(type="aws_instance", name="web", attributes={
        "ami": "ami-123", "instance_type": "t2.micro", "tags": {"Env": "dev"},
    })


class TestRegistry:

    def test_unknown_type(self):
        registry = ProviderRegistry()
        registry.register(NullProvider())
        with pytest.raises(ConfigurationError, match="aws_instance"):
            registry.get("aws_instance")

    def test_default_registry_without_aws(self):
        assert default_registry({}).resource_types == ["null_resource"]

    def test_default_registry_with_aws(self):
        registry = default_registry({"aws": {"region": "us-east-1"}})
        assert registry.resource_types == ["aws_instance", "null_resource"]


def test_null_provider_round_trip():
    provider = NullProvider()
    spec = ResourceSpec(type="null_resource", name="a", attributes={"x": 1})
    resource_id, attributes = provider.create(spec)
    assert resource_id
    assert attributes == {"x": 1}

    descriptor = ResourceDescriptor(type="null_resource", name="a", id=resource_id, attributes=attributes)
    updated = provider.update(descriptor, ResourceSpec(type="null_resource", name="a", attributes={"x": 2}))
    assert updated == {"x": 2}
    provider.delete(descriptor)


class TestEC2Provider:

    def test_create(self, web_spec):
        ec2 = _ec2_client()
        provider = EC2Provider(ec2=ec2, wait=False)

        resource_id, attributes = provider.create(web_spec)

        assert resource_id == "i-0abc"
        params = ec2.run_instances.call_args.kwargs
        assert params["ImageId"] == "ami-123"
        assert params["InstanceType"] == "t2.micro"
        assert params["MinCount"] == params["MaxCount"] == 1
        tags = params["TagSpecifications"][0]["Tags"]
        assert {"Key": "Name", "Value": "web"} in tags
        assert {"Key": "Env", "Value": "dev"} in tags
        assert attributes["public_ip"] == "54.1.2.3"
        assert attributes["private_ip"] == "10.0.0.5"
        assert attributes["instance_state"] == "running"
        assert attributes["ami"] == "ami-123"

    def test_create_waits_for_running(self, web_spec):
        ec2 = _ec2_client()
        EC2Provider(ec2=ec2).create(web_spec)
        ec2.get_waiter.assert_called_with("instance_running")

    def test_create_requires_ami(self):
        provider = EC2Provider(ec2=_ec2_client(), wait=False)
        with pytest.raises(ProviderError, match="ami"):
            provider.create(ResourceSpec(type="aws_instance", name="web", attributes={"instance_type": "t2.micro"}))

    def test_create_api_failure(self, web_spec):
        ec2 = _ec2_client()
        ec2.run_instances.side_effect = ClientError(
            {"Error": {"Code": "InsufficientInstanceCapacity", "Message": "no capacity"}}, "RunInstances"
        )
        with pytest.raises(ProviderError) as exc:
            EC2Provider(ec2=ec2, wait=False).create(web_spec)
        assert exc.value.address == "aws_instance.web"

    def test_update_tags(self, web_spec):
        ec2 = _ec2_client()
        descriptor = ResourceDescriptor(type="aws_instance", name="web", id="i-0abc", attributes={
            "ami": "ami-123", "instance_type": "t2.micro", "tags": {"Env": "dev", "Team": "ops"},
            "public_ip": "54.1.2.3",
        })
        new_spec = web_spec.model_copy(update={"attributes": {**web_spec.attributes, "tags": {"Env": "prod"}}})

        attributes = EC2Provider(ec2=ec2, wait=False).update(descriptor, new_spec)

        ec2.create_tags.assert_called_once_with(Resources=["i-0abc"], Tags=[{"Key": "Env", "Value": "prod"}])
        ec2.delete_tags.assert_called_once_with(Resources=["i-0abc"], Tags=[{"Key": "Team"}])
        assert attributes["tags"] == {"Env": "prod"}
        assert attributes["public_ip"] == "54.1.2.3"

    def test_update_requiring_replacement(self, web_spec):
        ec2 = _ec2_client()
        descriptor = ResourceDescriptor(type="aws_instance", name="web", id="i-0abc",
                                        attributes=dict(web_spec.attributes))
        new_spec = web_spec.model_copy(update={"attributes": {**web_spec.attributes, "instance_type": "t3.large"}})

        with pytest.raises(ProviderError, match="instance_type"):
            EC2Provider(ec2=ec2, wait=False).update(descriptor, new_spec)
        ec2.create_tags.assert_not_called()

    def test_delete(self):
        ec2 = _ec2_client()
        descriptor = ResourceDescriptor(type="aws_instance", name="web", id="i-0abc")
        EC2Provider(ec2=ec2, wait=False).delete(descriptor)
        ec2.terminate_instances.assert_called_once_with(InstanceIds=["i-0abc"])

    def test_delete_already_gone(self, caplog):
        ec2 = _ec2_client()
        ec2.terminate_instances.side_effect = ClientError(
            {"Error": {"Code": "InvalidInstanceID.NotFound", "Message": "gone"}}, "TerminateInstances"
        )
        descriptor = ResourceDescriptor(type="aws_instance", name="web", id="i-0abc")
        EC2Provider(ec2=ec2, wait=False).delete(descriptor)
        assert "no longer exists" in caplog.text

    def test_delete_failure(self):
        ec2 = _ec2_client()
        ec2.terminate_instances.side_effect = ClientError(
            {"Error": {"Code": "UnauthorizedOperation", "Message": "denied"}}, "TerminateInstances"
        )
        descriptor = ResourceDescriptor(type="aws_instance", name="web", id="i-0abc")
        with pytest.raises(ProviderError):
            EC2Provider(ec2=ec2, wait=False).delete(descriptor)
