"""
Change report aggregation.

This module contains the decision logic of the analyzer:
- Aggregates classified resource changes into per-kind counts and addresses
- Scores the severity of the pending changes
- Decides whether the change set is safe to apply without a human in the loop
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .exceptions import PlanParseError
from .plan import Plan
from .types import CHANGE_KIND_ORDER, ChangeAddresses, ChangeCounts, ChangeKind, Severity

SUMMARY_PATTERN = re.compile(
    r"Summary: (?P<create>\d+) to create, (?P<update>\d+) to update, "
    r"(?P<replace>\d+) to replace, (?P<delete>\d+) to delete, "
    r"(?P<noop>\d+) unchanged\."
)


def empty_counts() -> ChangeCounts:
    return {kind: 0 for kind in CHANGE_KIND_ORDER}


def score_severity(counts: Mapping[ChangeKind, int], drift_count: int = 0) -> Severity:
    """
    Scores how severe a set of pending changes is.

    Args:
        counts: Number of resource changes per ChangeKind
        drift_count: Number of resources Terraform saw changed outside of Terraform

    Returns:
        HIGH for any delete or replace, MEDIUM for updates, LOW for pure
        creates or drift with nothing pending, NONE otherwise
    """
    if counts.get(ChangeKind.DELETE, 0) > 0 or counts.get(ChangeKind.REPLACE, 0) > 0:
        return Severity.HIGH
    if counts.get(ChangeKind.UPDATE, 0) > 0:
        return Severity.MEDIUM
    if counts.get(ChangeKind.CREATE, 0) > 0 or drift_count > 0:
        return Severity.LOW
    return Severity.NONE


def is_safe_to_remediate(counts: Mapping[ChangeKind, int]) -> bool:
    """A change set is safe to apply unattended when it destroys nothing."""
    return counts.get(ChangeKind.DELETE, 0) == 0 and counts.get(ChangeKind.REPLACE, 0) == 0


@dataclass
class ChangeReport:
    """Aggregated view of a Terraform plan."""

    counts: ChangeCounts = field(default_factory=empty_counts)
    addresses: ChangeAddresses = field(
        default_factory=lambda: {kind: [] for kind in CHANGE_KIND_ORDER}
    )
    drifted: List[str] = field(default_factory=list)
    output_changes: Dict[ChangeKind, List[str]] = field(
        default_factory=lambda: {kind: [] for kind in CHANGE_KIND_ORDER}
    )
    terraform_version: Optional[str] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def pending(self) -> int:
        return self.total - self.counts[ChangeKind.NO_OP]

    @property
    def severity(self) -> Severity:
        return score_severity(self.counts, drift_count=len(self.drifted))

    @property
    def safe_to_remediate(self) -> bool:
        return is_safe_to_remediate(self.counts)

    @property
    def has_changes(self) -> bool:
        return any(
            count > 0 for kind, count in self.counts.items() if kind is not ChangeKind.NO_OP
        )

    @property
    def drift_detected(self) -> bool:
        return self.has_changes or bool(self.drifted)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "drift_detected": self.drift_detected,
            "has_changes": self.has_changes,
            "severity": self.severity.name.lower(),
            "safe_to_remediate": self.safe_to_remediate,
            "total": self.total,
            "counts": {kind.value: self.counts[kind] for kind in CHANGE_KIND_ORDER},
            "addresses": {kind.value: list(self.addresses[kind]) for kind in CHANGE_KIND_ORDER},
            "drifted": list(self.drifted),
            "output_changes": {
                kind.value: list(names) for kind, names in self.output_changes.items() if names
            },
            "terraform_version": self.terraform_version,
            "timestamp": self.timestamp,
        }


def build_report(plan: Plan) -> ChangeReport:
    """
    Builds a ChangeReport from a parsed plan.

    Every resource change lands in exactly one bucket, so the counts always
    sum to the number of resource changes in the plan.
    """
    report = ChangeReport(terraform_version=plan.terraform_version)

    for resource_change in plan.resource_changes:
        kind = resource_change.kind
        report.counts[kind] += 1
        report.addresses[kind].append(resource_change.address)

    for drifted in plan.resource_drift:
        if drifted.kind is not ChangeKind.NO_OP:
            report.drifted.append(drifted.address)

    for output_change in plan.output_changes:
        report.output_changes[output_change.kind].append(output_change.name)

    return report


def summary_line(report: ChangeReport) -> str:
    counts = report.counts
    return (
        f"Summary: {counts[ChangeKind.CREATE]} to create, "
        f"{counts[ChangeKind.UPDATE]} to update, "
        f"{counts[ChangeKind.REPLACE]} to replace, "
        f"{counts[ChangeKind.DELETE]} to delete, "
        f"{counts[ChangeKind.NO_OP]} unchanged."
    )


def parse_summary(text: str) -> ChangeCounts:
    """
    Recovers the per-kind counts from rendered report text.

    Raises:
        PlanParseError: If no summary line is present
    """
    match = SUMMARY_PATTERN.search(text)
    if not match:
        raise PlanParseError("No summary line found in report text")
    return {
        ChangeKind.CREATE: int(match.group("create")),
        ChangeKind.UPDATE: int(match.group("update")),
        ChangeKind.DELETE: int(match.group("delete")),
        ChangeKind.REPLACE: int(match.group("replace")),
        ChangeKind.NO_OP: int(match.group("noop")),
    }
