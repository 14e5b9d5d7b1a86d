"""
Drift detection and monitoring.

The detection process:
1. Runs 'terraform plan' into a saved plan file
2. Reads the saved plan back with 'terraform show -json'
3. Classifies every resource change and aggregates a ChangeReport
4. Optionally applies the saved plan when the report is safe to remediate
"""

import time
from typing import Callable, List, Optional

from .plan import Plan, parse_plan
from .report import ChangeReport, build_report
from .terraform import CommandResult, TerraformRunner
from .utils import get_logger

logger = get_logger()

DEFAULT_PLAN_FILE = "drift.tfplan"


class DriftDetector:
    """Detect and optionally remediate drift in a Terraform working directory."""

    def __init__(self, runner: TerraformRunner, plan_file: str = DEFAULT_PLAN_FILE) -> None:
        self.runner = runner
        self.plan_file = plan_file
        self.last_plan: Optional[Plan] = None

    def detect(
        self,
        refresh_only: bool = False,
        destroy: bool = False,
        target: Optional[str] = None,
    ) -> ChangeReport:
        """
        Runs a plan and builds a report from its JSON representation.

        Args:
            refresh_only: Plan only the changes made outside of Terraform
            destroy: Plan the destruction of every managed resource
            target: Optional resource address to limit the plan to

        Returns:
            ChangeReport for the plan

        Raises:
            TerraformError: If terraform plan or show fails
        """
        logger.info(f"Running drift detection in {self.runner.work_dir}")
        self.runner.plan(
            out_file=self.plan_file, destroy=destroy, refresh_only=refresh_only, target=target
        ).raise_for_status()
        shown = self.runner.show_json(self.plan_file).raise_for_status()

        plan = parse_plan(shown.data)
        self.last_plan = plan
        report = build_report(plan)

        logger.info(
            f"Drift detection completed. Pending changes: {report.pending}, "
            f"severity: {report.severity.name}, safe to remediate: {report.safe_to_remediate}"
        )
        return report

    def remediate(self, report: ChangeReport) -> Optional[CommandResult]:
        """
        Applies the saved plan when the report allows it.

        Returns:
            The apply result, or None when remediation was skipped

        Raises:
            TerraformError: If the apply itself fails
        """
        if not report.drift_detected:
            logger.info("Nothing to remediate")
            return None
        if not report.safe_to_remediate:
            logger.warning(
                f"Skipping remediation: plan deletes or replaces resources (severity {report.severity.name})"
            )
            return None

        logger.info(f"Applying saved plan {self.plan_file}")
        result = self.runner.apply(plan_file=self.plan_file)
        result.raise_for_status()
        logger.info(f"Remediation applied: {result.counts or result.message}")
        return result

    def monitor(
        self,
        interval_seconds: float,
        auto_remediate: bool = False,
        max_iterations: Optional[int] = None,
        on_report: Optional[Callable[[ChangeReport], None]] = None,
        refresh_only: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> List[ChangeReport]:
        """
        Polls for drift on an interval.

        Args:
            interval_seconds: Delay between iterations
            auto_remediate: Apply plans that are safe to remediate
            max_iterations: Stop after this many iterations, None runs forever
            on_report: Callback invoked with every report
            refresh_only: Use refresh-only plans
            sleep: Sleep function, replaceable in tests

        Returns:
            The reports produced, in order
        """
        reports: List[ChangeReport] = []
        iteration = 0
        try:
            while max_iterations is None or iteration < max_iterations:
                iteration += 1
                logger.info(f"Drift check {iteration}")
                try:
                    report = self.detect(refresh_only=refresh_only)
                except Exception as e:
                    logger.error(f"Drift check {iteration} failed: {e}")
                else:
                    reports.append(report)
                    if on_report is not None:
                        try:
                            on_report(report)
                        except Exception as e:
                            logger.error(f"Report handler failed: {e}")
                    if auto_remediate:
                        try:
                            self.remediate(report)
                        except Exception as e:
                            logger.error(f"Remediation failed: {e}")

                if max_iterations is not None and iteration >= max_iterations:
                    break
                sleep(interval_seconds)
        except KeyboardInterrupt:
            logger.info("Monitoring interrupted")
        return reports
