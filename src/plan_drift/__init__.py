"""
Terraform Plan Drift Analyzer Package.

This package classifies the resource changes in Terraform's JSON plan output,
scores how severe the pending drift is and renders human-readable reports.
All provisioning work is delegated to the terraform binary.

The analysis process:
1. Runs terraform plan (or reads a saved JSON plan from disk or S3)
2. Classifies each resource change as create, update, delete, replace or no-op
3. Aggregates counts and addresses per change kind into a ChangeReport
4. Scores severity and decides whether the plan is safe to remediate
"""

from .classification import classify
from .drift import DriftDetector
from .plan import Plan, ResourceChange, load_plan, parse_plan
from .report import ChangeReport, build_report, is_safe_to_remediate, score_severity
from .types import ChangeKind, Severity

__all__ = [
    "ChangeKind",
    "ChangeReport",
    "DriftDetector",
    "Plan",
    "ResourceChange",
    "Severity",
    "build_report",
    "classify",
    "is_safe_to_remediate",
    "load_plan",
    "parse_plan",
    "score_severity",
]
