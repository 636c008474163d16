"""
Pytest configuration and shared fixtures for testing.
"""

import json
from datetime import datetime, timezone

import boto3
import pytest
from moto import mock_aws

from sweeper.core.aws_client import AWSClient
from sweeper.core.models import Resource, ResourceKind
from sweeper.core.region_manager import RegionManager

ACCOUNT_ID = "123456789012"

ASSUME_ROLE_POLICY = json.dumps(
    {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"Service": "ec2.amazonaws.com"},
                "Action": "sts:AssumeRole",
            }
        ],
    }
)

READ_ONLY_POLICY = json.dumps(
    {
        "Version": "2012-10-17",
        "Statement": [{"Effect": "Allow", "Action": "s3:GetObject", "Resource": "*"}],
    }
)


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    import os

    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def mock_aws_environment(aws_credentials):
    """Create a mocked AWS environment."""
    with mock_aws():
        yield


@pytest.fixture
def aws_client(mock_aws_environment):
    """Create an AWSClient instance for testing."""
    return AWSClient(region="us-east-1")


@pytest.fixture
def region_manager(aws_client):
    """RegionManager sharing the test AWSClient as its home client."""
    return RegionManager(base_client=aws_client, max_workers=2)


@pytest.fixture
def iam_client(mock_aws_environment):
    """Create a boto3 IAM client for setting up test resources."""
    return boto3.client("iam", region_name="us-east-1")


@pytest.fixture
def ec2_client(mock_aws_environment):
    """Create a boto3 EC2 client for setting up test resources."""
    return boto3.client("ec2", region_name="us-east-1")


@pytest.fixture
def vpc(ec2_client):
    """Create a VPC for testing."""
    response = ec2_client.create_vpc(CidrBlock="10.0.0.0/16")
    return response["Vpc"]["VpcId"]


@pytest.fixture
def subnet(ec2_client, vpc):
    """Create a subnet for testing."""
    response = ec2_client.create_subnet(
        VpcId=vpc,
        CidrBlock="10.0.1.0/24",
        AvailabilityZone="us-east-1a",
    )
    return response["Subnet"]["SubnetId"]


@pytest.fixture
def create_role(iam_client):
    """Factory creating an IAM role; returns the role dict."""

    def _create(name, path="/"):
        return iam_client.create_role(
            RoleName=name,
            Path=path,
            AssumeRolePolicyDocument=ASSUME_ROLE_POLICY,
        )["Role"]

    return _create


@pytest.fixture
def create_policy(iam_client):
    """Factory creating a customer-managed policy; returns its ARN."""

    def _create(name):
        return iam_client.create_policy(
            PolicyName=name,
            PolicyDocument=READ_ONLY_POLICY,
        )["Policy"]["Arn"]

    return _create


@pytest.fixture
def make_role():
    """Factory for in-memory role resources."""

    def _make(name="app-role", **kwargs):
        kwargs.setdefault("arn", f"arn:aws:iam::{ACCOUNT_ID}:role/{name}")
        kwargs.setdefault("creation_time", datetime(2023, 1, 1, tzinfo=timezone.utc))
        return Resource(id=f"AROA{name.upper()}", name=name, kind=ResourceKind.ROLE, **kwargs)

    return _make


@pytest.fixture
def make_policy():
    """Factory for in-memory policy resources."""

    def _make(name="app-policy", **kwargs):
        arn = f"arn:aws:iam::{ACCOUNT_ID}:policy/{name}"
        kwargs.setdefault("arn", arn)
        return Resource(id=arn, name=name, kind=ResourceKind.POLICY, **kwargs)

    return _make


@pytest.fixture
def make_security_group():
    """Factory for in-memory security group resources."""

    def _make(group_id="sg-0123456789abcdef0", name="web", region="us-east-1", **kwargs):
        return Resource(
            id=group_id, name=name, kind=ResourceKind.SECURITY_GROUP, region=region, **kwargs
        )

    return _make
