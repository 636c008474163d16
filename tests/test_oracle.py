"""
Tests for the liveness oracle and the run-scoped usage cache.
"""

import threading

import pytest

from sweeper.core.exceptions import SourceUnavailable
from sweeper.core.models import ResourceKind, UsageSignal
from sweeper.liveness.cache import UsageCache
from sweeper.liveness.oracle import LivenessOracle
from sweeper.liveness.sources import UsageSource


def _found(detail):
    return lambda resource, context: [UsageSignal("found", True, detail)]


def _nothing(resource, context):
    return []


def _broken(resource, context):
    raise RuntimeError("AccessDenied")


def _oracle(region_manager, sources, kind=ResourceKind.ROLE, regions=None):
    return LivenessOracle(region_manager, regions=regions, sources={kind: sources})


class TestLivenessOracle:
    """Tests for signal aggregation."""

    def test_any_match_means_in_use(self, region_manager, make_role):
        oracle = _oracle(
            region_manager,
            [
                UsageSource("serverless-function", _nothing),
                UsageSource("compute-instance", _found("EC2 instance i-1")),
            ],
        )

        verdict = oracle.evaluate(make_role())

        assert verdict.in_use
        assert verdict.reasons == ("found: EC2 instance i-1",)
        assert verdict.is_complete

    def test_no_match(self, region_manager, make_role):
        oracle = _oracle(region_manager, [UsageSource("serverless-function", _nothing)])
        verdict = oracle.evaluate(make_role())

        assert not verdict.in_use
        assert verdict.reasons == ()
        assert verdict.unchecked_sources == ()

    def test_unchecked_source_is_not_a_vote(self, region_manager, make_role):
        """A failing source is reported, never counted as unused evidence."""
        oracle = _oracle(
            region_manager,
            [
                UsageSource("build-project", _broken),
                UsageSource("compute-instance", _found("EC2 instance i-1")),
            ],
        )

        verdict = oracle.evaluate(make_role())

        assert verdict.in_use
        assert verdict.unchecked_sources == ("build-project (us-east-1)",)

    def test_failure_does_not_stop_other_sources(self, region_manager, make_role):
        calls = []

        def tracking(resource, context):
            calls.append(context.region)
            return []

        oracle = _oracle(
            region_manager,
            [UsageSource("build-project", _broken), UsageSource("scaling-group", tracking)],
            regions=["us-east-1", "eu-west-1"],
        )

        verdict = oracle.evaluate(make_role())

        assert calls == ["us-east-1", "eu-west-1"]
        assert verdict.unchecked_sources == (
            "build-project (us-east-1)",
            "build-project (eu-west-1)",
        )
        assert not verdict.in_use

    def test_regional_resource_checked_in_own_region(self, region_manager, make_security_group):
        regions_seen = []

        def tracking(resource, context):
            regions_seen.append(context.region)
            return []

        oracle = _oracle(
            region_manager,
            [UsageSource("compute-instance", tracking)],
            kind=ResourceKind.SECURITY_GROUP,
            regions=["us-east-1", "eu-west-1"],
        )

        oracle.evaluate(make_security_group(region="eu-west-1"))

        assert regions_seen == ["eu-west-1"]

    def test_global_source_checked_once(self, region_manager, make_policy):
        regions_seen = []

        def tracking(resource, context):
            regions_seen.append(context.region)
            return []

        oracle = _oracle(
            region_manager,
            [UsageSource("role-attachment", tracking, regional=False)],
            kind=ResourceKind.POLICY,
            regions=["us-east-1", "eu-west-1"],
        )

        verdict = oracle.evaluate(make_policy())

        assert regions_seen == [None]
        assert verdict.unchecked_sources == ()

    def test_unscanned_regions_listed_for_global_resource(self, region_manager, make_role):
        oracle = LivenessOracle(
            region_manager,
            regions=["us-east-1"],
            sources={ResourceKind.ROLE: [UsageSource("serverless-function", _nothing)]},
            unscanned_regions=["eu-west-1", "us-east-1", "ap-south-1"],
        )

        verdict = oracle.evaluate(make_role())

        assert not verdict.in_use
        assert verdict.unchecked_sources == (
            "regional sources (eu-west-1)",
            "regional sources (ap-south-1)",
        )

    def test_unscanned_regions_ignored_for_regional_resource(
        self, region_manager, make_security_group
    ):
        oracle = LivenessOracle(
            region_manager,
            regions=["us-east-1"],
            sources={ResourceKind.SECURITY_GROUP: [UsageSource("compute-instance", _nothing)]},
            unscanned_regions=["eu-west-1"],
        )

        verdict = oracle.evaluate(make_security_group(region="us-east-1"))

        assert verdict.unchecked_sources == ()

    def test_unscanned_regions_ignored_without_regional_sources(
        self, region_manager, make_policy
    ):
        oracle = LivenessOracle(
            region_manager,
            sources={
                ResourceKind.POLICY: [UsageSource("role-attachment", _nothing, regional=False)]
            },
            unscanned_regions=["eu-west-1"],
        )

        assert oracle.evaluate(make_policy()).unchecked_sources == ()

    def test_default_registry_against_moto(self, region_manager, create_role, make_role):
        """An untouched account has no references to a fresh role."""
        create_role("lonely-role")
        oracle = LivenessOracle(region_manager)

        verdict = oracle.evaluate(make_role("lonely-role"))

        assert not verdict.in_use


class TestUsageCache:
    """Tests for the run-scoped listing cache."""

    def test_loads_once(self):
        cache = UsageCache()
        calls = []

        def loader():
            calls.append(1)
            return ["a"]

        assert cache.get_or_load(("lambda-functions", "us-east-1"), loader) == ["a"]
        assert cache.get_or_load(("lambda-functions", "us-east-1"), loader) == ["a"]
        assert len(calls) == 1

    def test_regions_are_separate(self):
        cache = UsageCache()
        cache.get_or_load(("x", "us-east-1"), lambda: 1)
        cache.get_or_load(("x", "eu-west-1"), lambda: 2)
        assert len(cache) == 2

    def test_failure_is_remembered(self):
        cache = UsageCache()
        calls = []

        def loader():
            calls.append(1)
            raise RuntimeError("throttled")

        for _ in range(2):
            with pytest.raises(SourceUnavailable) as excinfo:
                cache.get_or_load(("codebuild-projects", "us-east-1"), loader)
            assert excinfo.value.source == "codebuild-projects"
        assert len(calls) == 1

    def test_concurrent_callers_share_one_load(self):
        cache = UsageCache()
        calls = []
        release = threading.Event()

        def loader():
            calls.append(1)
            release.wait(timeout=5)
            return "listing"

        results = []
        threads = [
            threading.Thread(
                target=lambda: results.append(cache.get_or_load(("ec2", "us-east-1"), loader))
            )
            for _ in range(4)
        ]
        for thread in threads:
            thread.start()
        release.set()
        for thread in threads:
            thread.join(timeout=5)

        assert results == ["listing"] * 4
        assert len(calls) == 1
