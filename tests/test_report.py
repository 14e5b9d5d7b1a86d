"""
Tests for change report aggregation, severity scoring and remediation safety.
"""

import json
import unittest
from pathlib import Path

from plan_drift.exceptions import PlanParseError
from plan_drift.plan import Plan, ResourceChange, parse_plan
from plan_drift.report import (
    build_report,
    empty_counts,
    is_safe_to_remediate,
    parse_summary,
    score_severity,
    summary_line,
)
from plan_drift.types import CHANGE_KIND_ORDER, ChangeKind, Severity

FIXTURES = Path(__file__).parent


def plan_from_actions(*action_lists):
    """Builds a Plan whose resource changes carry the given actions lists."""
    changes = [
        ResourceChange(
            address=f"null_resource.r{idx}",
            type="null_resource",
            name=f"r{idx}",
            actions=list(actions),
        )
        for idx, actions in enumerate(action_lists)
    ]
    return Plan(resource_changes=changes, terraform_version="1.6.4")


class TestBuildReport(unittest.TestCase):
    """Aggregation of classified resource changes."""

    def test_mixed_plan(self) -> None:
        plan = plan_from_actions(["create"], ["update"], ["delete", "create"], ["delete"])
        report = build_report(plan)

        self.assertEqual(report.counts[ChangeKind.CREATE], 1)
        self.assertEqual(report.counts[ChangeKind.UPDATE], 1)
        self.assertEqual(report.counts[ChangeKind.REPLACE], 1)
        self.assertEqual(report.counts[ChangeKind.DELETE], 1)
        self.assertEqual(report.counts[ChangeKind.NO_OP], 0)
        self.assertEqual(report.severity, Severity.HIGH)
        self.assertFalse(report.safe_to_remediate)
        self.assertTrue(report.has_changes)

    def test_counts_sum_to_resource_changes(self) -> None:
        plans = [
            plan_from_actions(),
            plan_from_actions(["no-op"], ["read"]),
            plan_from_actions(["create"], ["create"], ["update"], ["create", "delete"]),
            plan_from_actions(["delete"], ["forget"], ["no-op"], [], ["update"]),
        ]
        for plan in plans:
            report = build_report(plan)
            self.assertEqual(sum(report.counts.values()), len(plan.resource_changes))
            self.assertEqual(report.total, len(plan.resource_changes))

    def test_addresses_grouped_by_kind(self) -> None:
        report = build_report(plan_from_actions(["create"], ["no-op"], ["create"]))
        self.assertEqual(report.addresses[ChangeKind.CREATE], ["null_resource.r0", "null_resource.r2"])
        self.assertEqual(report.addresses[ChangeKind.NO_OP], ["null_resource.r1"])
        self.assertEqual(report.pending, 2)

    def test_empty_plan(self) -> None:
        report = build_report(Plan())
        self.assertEqual(report.total, 0)
        self.assertEqual(report.severity, Severity.NONE)
        self.assertTrue(report.safe_to_remediate)
        self.assertFalse(report.has_changes)
        self.assertFalse(report.drift_detected)

    def test_sample_plan(self) -> None:
        with open(FIXTURES / "sample_plan.json", "r") as f:
            report = build_report(parse_plan(json.load(f)))

        self.assertEqual(report.total, 6)
        self.assertEqual(report.counts[ChangeKind.NO_OP], 2)
        self.assertEqual(report.drifted, ["aws_instance.web"])
        self.assertEqual(report.output_changes[ChangeKind.CREATE], ["bucket_arn"])
        self.assertEqual(report.terraform_version, "1.6.4")
        self.assertEqual(report.severity, Severity.HIGH)

    def test_drift_only_plan(self) -> None:
        drifted = ResourceChange(
            address="aws_instance.web", type="aws_instance", name="web", actions=["update"]
        )
        plan = Plan(resource_changes=[], resource_drift=[drifted])
        report = build_report(plan)

        self.assertFalse(report.has_changes)
        self.assertTrue(report.drift_detected)
        self.assertEqual(report.severity, Severity.LOW)
        self.assertTrue(report.safe_to_remediate)

    def test_to_dict(self) -> None:
        report = build_report(plan_from_actions(["create"], ["update"]))
        data = report.to_dict()

        self.assertTrue(data["drift_detected"])
        self.assertEqual(data["severity"], "medium")
        self.assertTrue(data["safe_to_remediate"])
        self.assertEqual(data["total"], 2)
        self.assertEqual(
            data["counts"], {"create": 1, "update": 1, "delete": 0, "replace": 0, "no-op": 0}
        )
        self.assertEqual(data["addresses"]["update"], ["null_resource.r1"])
        self.assertEqual(data["output_changes"], {})
        json.dumps(data)


class TestSeverity(unittest.TestCase):
    """Severity is monotone in the kinds present."""

    def counts(self, **kwargs):
        counts = empty_counts()
        for key, value in kwargs.items():
            counts[ChangeKind(key.replace("_", "-"))] = value
        return counts

    def test_levels(self) -> None:
        self.assertEqual(score_severity(self.counts()), Severity.NONE)
        self.assertEqual(score_severity(self.counts(no_op=4)), Severity.NONE)
        self.assertEqual(score_severity(self.counts(create=2)), Severity.LOW)
        self.assertEqual(score_severity(self.counts(create=2, update=1)), Severity.MEDIUM)
        self.assertEqual(score_severity(self.counts(update=1, delete=1)), Severity.HIGH)
        self.assertEqual(score_severity(self.counts(replace=1)), Severity.HIGH)

    def test_drift_without_changes_is_low(self) -> None:
        self.assertEqual(score_severity(self.counts(), drift_count=1), Severity.LOW)
        self.assertEqual(score_severity(self.counts(update=1), drift_count=1), Severity.MEDIUM)

    def test_adding_changes_never_lowers_severity(self) -> None:
        base = self.counts(update=1)
        for kind in CHANGE_KIND_ORDER:
            counts = dict(base)
            counts[kind] += 1
            self.assertGreaterEqual(score_severity(counts), score_severity(base), kind)

    def test_severity_ordering(self) -> None:
        self.assertLess(Severity.NONE, Severity.LOW)
        self.assertLess(Severity.LOW, Severity.MEDIUM)
        self.assertLess(Severity.MEDIUM, Severity.HIGH)


class TestSafeToRemediate(unittest.TestCase):
    """Safe iff nothing is deleted or replaced."""

    def test_additive_changes_are_safe(self) -> None:
        counts = empty_counts()
        counts[ChangeKind.CREATE] = 3
        counts[ChangeKind.UPDATE] = 2
        counts[ChangeKind.NO_OP] = 7
        self.assertTrue(is_safe_to_remediate(counts))

    def test_destructive_changes_are_unsafe(self) -> None:
        for kind in (ChangeKind.DELETE, ChangeKind.REPLACE):
            counts = empty_counts()
            counts[kind] = 1
            self.assertFalse(is_safe_to_remediate(counts), kind)


class TestSummaryLine(unittest.TestCase):
    """The summary line can be parsed back into counts."""

    def test_format(self) -> None:
        report = build_report(plan_from_actions(["create"], ["update"], ["delete", "create"], ["delete"]))
        self.assertEqual(
            summary_line(report),
            "Summary: 1 to create, 1 to update, 1 to replace, 1 to delete, 0 unchanged.",
        )

    def test_parse_summary_round_trip(self) -> None:
        report = build_report(plan_from_actions(["create"], ["create"], ["no-op"], ["delete"]))
        text = "some header\n" + summary_line(report) + "\nfooter"
        self.assertEqual(parse_summary(text), report.counts)

    def test_parse_summary_without_line(self) -> None:
        with self.assertRaises(PlanParseError):
            parse_summary("No changes. Infrastructure is up-to-date.")


if __name__ == "__main__":
    unittest.main()
