"""
EC2 instance provider.

Manages `aws_instance` resources with boto3. Only `tags` can change in
place; any other attribute change is rejected so the operator can destroy
and re-create the instance explicitly.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import ProviderError
from ..models import ResourceDescriptor, ResourceSpec
from .base import Provider

logger = logging.getLogger(__name__)

# HCL attribute -> run_instances parameter
_RUN_PARAMETERS = {
    "ami": "ImageId",
    "instance_type": "InstanceType",
    "key_name": "KeyName",
    "subnet_id": "SubnetId",
    "vpc_security_group_ids": "SecurityGroupIds",
    "user_data": "UserData",
}

UPDATABLE_ATTRIBUTES = {"tags"}


def _tag_list(tags: Dict[str, str]) -> List[Dict[str, str]]:
    return [{"Key": k, "Value": str(v)} for k, v in tags.items()]


class EC2Provider(Provider):
    """Provider for `aws_instance`."""

    resource_types = ("aws_instance",)

    def __init__(self, *, ec2: Optional[Any] = None, region_name: Optional[str] = None, wait: bool = True):
        self._ec2 = ec2 or boto3.client("ec2", region_name=region_name)
        self.wait = wait

    def _describe(self, instance_id: str) -> Dict[str, Any]:
        resp = self._ec2.describe_instances(InstanceIds=[instance_id])
        return resp["Reservations"][0]["Instances"][0]

    @staticmethod
    def _attributes(spec_attributes: Dict[str, Any], instance: Dict[str, Any]) -> Dict[str, Any]:
        attributes = dict(spec_attributes)
        attributes.update({
            "instance_state": instance.get("State", {}).get("Name"),
            "public_ip": instance.get("PublicIpAddress"),
            "private_ip": instance.get("PrivateIpAddress"),
            "availability_zone": instance.get("Placement", {}).get("AvailabilityZone"),
        })
        return attributes

    def create(self, spec: ResourceSpec) -> Tuple[str, Dict[str, Any]]:
        attrs = spec.attributes
        for required in ("ami", "instance_type"):
            if not attrs.get(required):
                raise ProviderError(spec.address, f"missing required attribute '{required}'")

        params: Dict[str, Any] = {"MinCount": 1, "MaxCount": 1}
        for name, param in _RUN_PARAMETERS.items():
            if attrs.get(name) is not None:
                params[param] = attrs[name]
        tags = {"Name": spec.name, **attrs.get("tags", {})}
        params["TagSpecifications"] = [{"ResourceType": "instance", "Tags": _tag_list(tags)}]

        try:
            resp = self._ec2.run_instances(**params)
            instance_id = resp["Instances"][0]["InstanceId"]
            logger.info(f"{spec.address}: launched {instance_id}")
            if self.wait:
                self._ec2.get_waiter("instance_running").wait(InstanceIds=[instance_id])
            instance = self._describe(instance_id)
        except (ClientError, BotoCoreError) as e:
            raise ProviderError(spec.address, f"run_instances failed: {e}") from e

        return instance_id, self._attributes(attrs, instance)

    def update(self, descriptor: ResourceDescriptor, spec: ResourceSpec) -> Dict[str, Any]:
        changed = {k for k, v in spec.attributes.items() if descriptor.attributes.get(k) != v}
        replace = changed - UPDATABLE_ATTRIBUTES
        if replace:
            raise ProviderError(
                spec.address,
                f"changing {', '.join(sorted(replace))} requires replacing the instance; "
                "destroy and apply again",
            )

        old_tags = descriptor.attributes.get("tags", {}) or {}
        new_tags = spec.attributes.get("tags", {}) or {}
        removed = [k for k in old_tags if k not in new_tags]
        try:
            if new_tags:
                self._ec2.create_tags(Resources=[descriptor.id], Tags=_tag_list(new_tags))
            if removed:
                self._ec2.delete_tags(Resources=[descriptor.id], Tags=[{"Key": k} for k in removed])
        except (ClientError, BotoCoreError) as e:
            raise ProviderError(spec.address, f"tag update failed: {e}") from e

        return {**descriptor.attributes, **spec.attributes}

    def delete(self, descriptor: ResourceDescriptor) -> None:
        try:
            self._ec2.terminate_instances(InstanceIds=[descriptor.id])
            logger.info(f"{descriptor.address}: terminating {descriptor.id}")
            if self.wait:
                self._ec2.get_waiter("instance_terminated").wait(InstanceIds=[descriptor.id])
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "InvalidInstanceID.NotFound":
                logger.warning(f"{descriptor.address}: {descriptor.id} no longer exists")
                return
            raise ProviderError(descriptor.address, f"terminate_instances failed: {e}") from e
        except BotoCoreError as e:
            raise ProviderError(descriptor.address, f"terminate_instances failed: {e}") from e
