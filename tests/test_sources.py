"""
Tests for the usage sources and their matching helpers.
"""

import pytest

from sweeper.core.exceptions import SourceUnavailable
from sweeper.core.models import ResourceKind
from sweeper.liveness.cache import UsageCache
from sweeper.liveness.sources import (
    SourceContext,
    UsageSource,
    build_rule_reference_index,
    check_policy_permissions_boundary,
    check_policy_role_attachment,
    check_role_compute_instances,
    check_sg_cross_reference,
    match_role_references,
    profile_references_role,
    register_source,
    role_reference_matches,
    sources_for,
)


@pytest.fixture
def context(region_manager):
    return SourceContext(
        client=region_manager.base_client,
        region="us-east-1",
        cache=UsageCache(),
        home_client=region_manager.base_client,
    )


class TestRoleMatching:
    """Tests for role reference matching."""

    def test_exact_arn(self, make_role):
        role = make_role("app-role")
        assert role_reference_matches(role, role.arn)

    def test_bare_name_case_insensitive(self, make_role):
        assert role_reference_matches(make_role("App-Role"), "app-role")

    def test_arn_with_path(self, make_role):
        role = make_role("app-role")
        assert role_reference_matches(role, "arn:aws:iam::123456789012:role/service/app-role")

    def test_different_role(self, make_role):
        role = make_role("app-role")
        assert not role_reference_matches(role, "arn:aws:iam::123456789012:role/app-role-2")
        assert not role_reference_matches(role, None)

    def test_match_role_references(self, make_role):
        role = make_role("app-role")
        references = [
            ("Lambda function ingest", role.arn),
            ("Lambda function other", "arn:aws:iam::123456789012:role/other"),
        ]

        signals = match_role_references("serverless-function", role, references)

        assert [s.detail for s in signals] == ["Lambda function ingest"]
        assert signals[0].matched


class TestProfileMatching:
    """Instance profile references only expose a profile name or ARN."""

    def test_membership(self, make_role):
        profiles = {"web-profile": ["app-role"]}
        assert profile_references_role(
            make_role("app-role"),
            "arn:aws:iam::123456789012:instance-profile/web-profile",
            profiles,
        )

    def test_substring_fallback(self, make_role):
        """Unknown profiles still match when their name contains the role name."""
        assert profile_references_role(
            make_role("app-role"),
            "arn:aws:iam::123456789012:instance-profile/App-Role-profile",
            {},
        )

    def test_substring_false_positive_is_accepted(self, make_role):
        # A role named "app" is flagged by any profile containing "app"
        assert profile_references_role(
            make_role("app"),
            "arn:aws:iam::123456789012:instance-profile/mapper",
            {"mapper": ["mapper-role"]},
        )

    def test_no_match(self, make_role):
        assert not profile_references_role(
            make_role("app-role"),
            "arn:aws:iam::123456789012:instance-profile/web-profile",
            {"web-profile": ["web-role"]},
        )


class TestRuleReferenceIndex:
    def test_cross_references(self):
        groups = [
            {
                "GroupId": "sg-a",
                "GroupName": "app",
                "IpPermissions": [{"UserIdGroupPairs": [{"GroupId": "sg-b"}]}],
                "IpPermissionsEgress": [],
            },
            {
                "GroupId": "sg-b",
                "GroupName": "db",
                "IpPermissions": [],
                "IpPermissionsEgress": [{"UserIdGroupPairs": [{"GroupId": "sg-c"}]}],
            },
        ]

        index = build_rule_reference_index(groups)

        assert index["sg-b"] == ["ingress rule of sg-a (app)"]
        assert index["sg-c"] == ["egress rule of sg-b (db)"]
        assert "sg-a" not in index

    def test_self_reference_ignored(self):
        groups = [
            {
                "GroupId": "sg-a",
                "GroupName": "cluster",
                "IpPermissions": [{"UserIdGroupPairs": [{"GroupId": "sg-a"}]}],
            }
        ]
        assert build_rule_reference_index(groups) == {}


class TestProviderBackedSources:
    """Sources queried against moto."""

    def test_compute_instance_profile(self, context, iam_client, ec2_client, create_role, make_role):
        create_role("app-role")
        profile = iam_client.create_instance_profile(InstanceProfileName="web-profile")
        iam_client.add_role_to_instance_profile(
            InstanceProfileName="web-profile", RoleName="app-role"
        )
        ec2_client.run_instances(
            ImageId="ami-12c6146b",
            MinCount=1,
            MaxCount=1,
            IamInstanceProfile={"Arn": profile["InstanceProfile"]["Arn"]},
        )

        signals = check_role_compute_instances(make_role("app-role"), context)
        assert len(signals) == 1
        assert signals[0].source == "compute-instance"
        assert "EC2 instance" in signals[0].detail

        assert check_role_compute_instances(make_role("batch-role"), context) == []

    def test_cross_reference(self, context, ec2_client, vpc, make_security_group):
        db = ec2_client.create_security_group(GroupName="db", Description="db", VpcId=vpc)
        app = ec2_client.create_security_group(GroupName="app", Description="app", VpcId=vpc)
        ec2_client.authorize_security_group_ingress(
            GroupId=db["GroupId"],
            IpPermissions=[
                {
                    "IpProtocol": "tcp",
                    "FromPort": 5432,
                    "ToPort": 5432,
                    "UserIdGroupPairs": [{"GroupId": app["GroupId"]}],
                }
            ],
        )

        signals = check_sg_cross_reference(make_security_group(app["GroupId"], "app"), context)
        assert [s.source for s in signals] == ["cross-reference"]
        assert check_sg_cross_reference(make_security_group(db["GroupId"], "db"), context) == []

    def test_policy_role_attachment(self, context, iam_client, create_role, create_policy, make_policy):
        arn = create_policy("app-policy")
        create_role("app-role")
        iam_client.attach_role_policy(RoleName="app-role", PolicyArn=arn)

        signals = check_policy_role_attachment(make_policy("app-policy", arn=arn), context)

        assert [(s.source, s.detail) for s in signals] == [("role-attachment", "role app-role")]

    def test_listings_are_cached(self, context, make_role):
        check_role_compute_instances(make_role("a"), context)
        assert ("ec2-instances", "us-east-1") in context.cache


class TestPermissionsBoundary:
    def test_boundary_in_use(self, context, make_policy):
        policy = make_policy(metadata={"boundary_usage_count": 2})
        signals = check_policy_permissions_boundary(policy, context)
        assert signals[0].detail == "boundary of 2 principal(s)"

    def test_not_a_boundary(self, context, make_policy):
        assert check_policy_permissions_boundary(
            make_policy(metadata={"boundary_usage_count": 0}), context
        ) == []

    def test_missing_count_is_unchecked(self, context, make_policy):
        with pytest.raises(SourceUnavailable):
            check_policy_permissions_boundary(make_policy(), context)


class TestRegistry:
    def test_default_role_sources(self):
        names = [s.name for s in sources_for(ResourceKind.ROLE)]
        assert names == [
            "compute-instance",
            "container-service",
            "serverless-function",
            "build-project",
            "scaling-group",
        ]

    def test_policy_sources_are_global(self):
        assert all(not s.regional for s in sources_for(ResourceKind.POLICY))

    def test_register_source(self, monkeypatch):
        from sweeper.liveness import sources

        registry = {kind: list(items) for kind, items in sources.DEFAULT_SOURCES.items()}
        monkeypatch.setattr(sources, "DEFAULT_SOURCES", registry)

        extra = UsageSource("step-function", lambda resource, context: [])
        register_source(ResourceKind.ROLE, extra)

        assert sources_for(ResourceKind.ROLE)[-1] is extra
