"""
Tests for the run report builder.
"""

from datetime import datetime, timedelta, timezone

import pytest

from sweeper.core.aws_client import Identity
from sweeper.core.exceptions import ReportFinalizedError
from sweeper.core.models import (
    Classification,
    DeleteStatus,
    DeletionPlan,
    DeletionStep,
    ExecutionResult,
    LivenessVerdict,
    ResourceKind,
    StepAction,
)
from sweeper.reporters.run_report import RunReportBuilder

START = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class TickingClock:
    def __init__(self, step=timedelta(seconds=30)):
        self.now = START
        self.step = step

    def __call__(self):
        current = self.now
        self.now += self.step
        return current


def _deleted(resource, status=DeleteStatus.SUCCESS):
    return ExecutionResult(resource=resource, status=status, deleted=True, steps_completed=1)


def _plan(resource):
    return DeletionPlan(resource, (DeletionStep(StepAction.DELETE_RESOURCE, resource),))


@pytest.fixture
def builder():
    return RunReportBuilder(
        ResourceKind.ROLE,
        identity=Identity("123456789012", "arn:aws:iam::123456789012:user/ops"),
        clock=TickingClock(),
    )


class TestBuckets:
    """Tests for classification and outcome buckets."""

    def test_counts(self, builder, make_role):
        active, recent = make_role("active"), make_role("recent")
        gone, broken, declined = make_role("gone"), make_role("broken"), make_role("declined")

        builder.record(active, Classification.ACTIVE)
        builder.record(recent, Classification.RECENT)
        builder.record(gone, Classification.UNUSED, _deleted(gone), plan=_plan(gone))
        builder.record(
            broken,
            Classification.UNUSED,
            ExecutionResult.failed(broken, "step 1/1 delete role broken", "DeleteConflict"),
        )
        builder.record(declined, Classification.UNUSED, ExecutionResult.skipped(declined))

        report = builder.finalize()

        assert report.counts == {
            "analyzed": 5,
            "active": 1,
            "recent": 1,
            "unused": 3,
            "deleted": 1,
            "failed": 1,
            "skipped": 1,
        }
        assert report.unused == ("gone", "broken", "declined")
        assert report.analyzed == ("active", "recent", "gone", "broken", "declined")
        assert report.has_failures

    def test_failures_carry_step_and_cause(self, builder, make_role):
        role = make_role("broken")
        builder.record(
            role,
            Classification.UNUSED,
            ExecutionResult.failed(role, "step 2/3 delete inline policy", "AccessDenied"),
        )

        report = builder.finalize()

        [(name, failure)] = report.failures
        assert name == "broken"
        assert failure.label == "step 2/3 delete inline policy"
        assert failure.cause == "AccessDenied"

    def test_plans_only_for_deleted(self, builder, make_role):
        gone, kept = make_role("gone"), make_role("kept")
        builder.record(gone, Classification.UNUSED, _deleted(gone, DeleteStatus.DRY_RUN), plan=_plan(gone))
        builder.record(kept, Classification.UNUSED, ExecutionResult.skipped(kept), plan=_plan(kept))

        report = builder.finalize()

        assert [p.resource.name for p in report.plans] == ["gone"]
        assert not report.has_failures

    def test_unchecked_sources(self, builder, make_role):
        role = make_role("partial")
        verdict = LivenessVerdict(in_use=False, unchecked_sources=("build-project (us-east-1)",))
        builder.record(role, Classification.UNUSED, verdict=verdict)

        assert builder.finalize().unchecked == {"partial": ("build-project (us-east-1)",)}

    def test_unchecked_is_read_only(self, builder, make_role):
        verdict = LivenessVerdict(in_use=False, unchecked_sources=("build-project (us-east-1)",))
        builder.record(make_role("partial"), Classification.UNUSED, verdict=verdict)
        report = builder.finalize()

        with pytest.raises(TypeError):
            report.unchecked["other"] = ("compute-instance (us-east-1)",)
        assert list(report.unchecked) == ["partial"]

    def test_regional_names(self, make_security_group):
        builder = RunReportBuilder(ResourceKind.SECURITY_GROUP)
        builder.record(make_security_group("sg-1", "web", "eu-west-1"), Classification.ACTIVE)

        assert builder.finalize().active == ("web (sg-1, eu-west-1)",)


class TestFinalize:
    def test_idempotent(self, builder, make_role):
        builder.record(make_role(), Classification.ACTIVE)
        assert builder.finalize() is builder.finalize()

    def test_record_after_finalize(self, builder, make_role):
        builder.finalize()
        with pytest.raises(ReportFinalizedError):
            builder.record(make_role(), Classification.ACTIVE)

    def test_cancelled(self, builder):
        builder.mark_cancelled()
        report = builder.finalize()
        assert report.cancelled
        with pytest.raises(ReportFinalizedError):
            builder.mark_cancelled()

    def test_empty_run(self):
        report = RunReportBuilder(ResourceKind.POLICY, dry_run=True).finalize()
        assert report.counts["analyzed"] == 0
        assert report.plans == []
        assert report.dry_run

    def test_default_clock_is_aware_utc(self, make_role):
        builder = RunReportBuilder(ResourceKind.ROLE)
        role = make_role()
        builder.record(role, Classification.UNUSED, ExecutionResult.skipped(role))
        report = builder.finalize()

        assert report.started_at.tzinfo is not None
        assert report.started_at.utcoffset() == timedelta(0)
        assert report.outcomes[0].result.timestamp.tzinfo is not None


class TestSerialization:
    def test_to_dict(self, builder, make_role):
        role = make_role("gone")
        builder.record(role, Classification.UNUSED, _deleted(role), plan=_plan(role))

        data = builder.finalize().to_dict()

        assert data["metadata"]["account"] == "123456789012"
        assert data["metadata"]["resource_type"] == "role"
        assert data["metadata"]["duration_seconds"] == 30
        assert data["deleted"] == ["gone"]
        assert data["resources"][0]["plan"] == ["delete role gone"]
        assert data["resources"][0]["result"]["status"] == "success"
