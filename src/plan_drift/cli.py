#!/usr/bin/env python3
"""
Command-line interface for the Terraform plan drift analyzer.

Usage:
    tf-plan-drift analyze plan.json
    tf-plan-drift analyze s3://your-bucket/plans/plan.json --region eu-west-2
    tf-plan-drift plan --workdir ./infra --config ./infra/main.tf.json
    tf-plan-drift drift --workdir ./infra --refresh-only
    tf-plan-drift monitor --workdir ./infra --interval 600 --auto-remediate
    tf-plan-drift apply --workdir ./infra
    tf-plan-drift state --workdir ./infra
    tf-plan-drift inspect ./infra/main.tf.json
"""

import argparse
import json
import sys
from collections import Counter
from typing import List, Optional

from rich.text import Text

from .config import Config, load_config, validate_plan_source
from .config_analysis import analyze_configuration
from .drift import DriftDetector
from .plan import Plan, load_plan
from .rendering import CONSOLE, format_attribute_value, render_report
from .report import ChangeReport, build_report
from .terraform import TerraformRunner
from .types import ConfigurationAnalysis
from .utils import read_source, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tf-plan-drift",
        description="Classify Terraform plan changes, score drift and render reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tf-plan-drift analyze plan.json
  tf-plan-drift drift --workdir ./infra --output-format json
  tf-plan-drift monitor --workdir ./infra --interval 600 --auto-remediate
        """,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--output-format",
        choices=["json", "pretty"],
        default="pretty",
        help="Output format for reports (default: pretty)",
    )

    terraform_options = argparse.ArgumentParser(add_help=False)
    terraform_options.add_argument(
        "--workdir", default=None, help="Terraform working directory (default: TERRAFORM_WORKING_DIR or .)"
    )
    terraform_options.add_argument(
        "--binary", default=None, help="Terraform binary (default: TERRAFORM_BINARY or terraform)"
    )
    terraform_options.add_argument(
        "--max-retries", type=int, default=None, help="Retries for transient terraform failures"
    )
    terraform_options.add_argument(
        "--config", dest="config_file", default=None, help="Generated *.tf.json used to annotate the report"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze a saved JSON plan")
    analyze.add_argument("source", help="Plan JSON: file path, local://path or s3://bucket/key")
    analyze.add_argument("--region", default=None, help="AWS region for S3 sources")
    analyze.add_argument(
        "--config", dest="config_file", default=None, help="Generated *.tf.json used to annotate the report"
    )

    plan = subparsers.add_parser("plan", parents=[terraform_options], help="Run terraform plan and report")
    plan.add_argument("--target", default=None, help="Limit the plan to a resource address")
    plan.add_argument("--destroy", action="store_true", help="Plan a destroy")

    drift = subparsers.add_parser("drift", parents=[terraform_options], help="Detect drift once")
    drift.add_argument("--refresh-only", action="store_true", help="Only report changes made outside Terraform")
    drift.add_argument("--target", default=None, help="Limit the plan to a resource address")

    apply = subparsers.add_parser("apply", parents=[terraform_options], help="Plan, report and apply")
    apply.add_argument("--target", default=None, help="Limit the plan to a resource address")
    apply.add_argument(
        "--allow-destroy",
        action="store_true",
        help="Apply even when the plan deletes or replaces resources",
    )

    monitor = subparsers.add_parser("monitor", parents=[terraform_options], help="Poll for drift")
    monitor.add_argument(
        "--interval", type=int, default=None, help="Seconds between checks (default: POLL_INTERVAL_SECONDS)"
    )
    monitor.add_argument(
        "--auto-remediate", action="store_true", default=None, help="Apply plans that are safe to remediate"
    )
    monitor.add_argument("--max-iterations", type=int, default=None, help="Stop after this many checks")
    monitor.add_argument("--refresh-only", action="store_true", help="Use refresh-only plans")

    subparsers.add_parser("state", parents=[terraform_options], help="List managed resources")

    inspect = subparsers.add_parser("inspect", help="Analyze a generated Terraform JSON configuration")
    inspect.add_argument("config_file", help="Path to a *.tf.json file")

    return parser


def resolve_config(args: argparse.Namespace) -> Config:
    """Loads configuration from the environment and applies CLI overrides."""
    config = load_config()
    if args.log_level:
        config.log_level = args.log_level
    if getattr(args, "workdir", None):
        config.working_dir = args.workdir
    if getattr(args, "binary", None):
        config.terraform_binary = args.binary
    if getattr(args, "max_retries", None) is not None:
        config.max_retries = args.max_retries
    if getattr(args, "region", None):
        config.aws_region = args.region
    if getattr(args, "interval", None) is not None:
        config.poll_interval_seconds = args.interval
    if getattr(args, "auto_remediate", None):
        config.auto_remediate = True
    return config


def build_runner(config: Config) -> TerraformRunner:
    return TerraformRunner(
        work_dir=config.working_dir,
        binary=config.terraform_binary,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay_seconds,
        timeout_seconds=config.timeout_seconds or None,
    )


def load_analysis(config_file: Optional[str]) -> Optional[ConfigurationAnalysis]:
    if not config_file:
        return None
    analysis = analyze_configuration(read_source(config_file))
    if "error" in analysis:
        return None
    return analysis


def emit_report(
    report: ChangeReport,
    output_format: str,
    plan: Optional[Plan] = None,
    analysis: Optional[ConfigurationAnalysis] = None,
) -> None:
    if output_format == "json":
        print(json.dumps(report.to_dict(), indent=2))
    else:
        render_report(report, plan=plan, analysis=analysis)


def print_state(resources: List[str]) -> None:
    """Print managed resources grouped by type."""
    if not resources:
        CONSOLE.print("No existing state found - this will be a fresh deployment")
        return

    CONSOLE.print(f"{len(resources)} resources currently managed")
    grouped = Counter(_resource_type(address) for address in resources)
    for resource_type, count in grouped.items():
        CONSOLE.print(Text.assemble("  * ", (resource_type, "cyan"), f": {count} instance(s)"))


def _resource_type(address: str) -> str:
    parts = [part for part in address.split(".") if part]
    # module.<name>.<type>.<name>
    while len(parts) > 2 and parts[0] in ("module", "data"):
        parts = parts[2:] if parts[0] == "module" else parts[1:]
    return parts[0] if parts else address


def print_analysis(analysis: ConfigurationAnalysis) -> None:
    """Print a configuration analysis summary."""
    summary = analysis["summary"]
    CONSOLE.print(Text("Summary:", style="bold"))
    CONSOLE.print(f"  * {summary['total_resources']} resources defined")
    CONSOLE.print(
        f"  * {len(summary['providers'])} provider(s): {', '.join(summary['providers'])}"
    )
    CONSOLE.print(f"  * {summary['variables_count']} variables")
    CONSOLE.print(f"  * {summary['outputs_count']} outputs")
    CONSOLE.print(
        Text.assemble(
            "  * Backend: ",
            ("configured", "green") if summary["has_backend"] else ("local", "yellow"),
        )
    )

    if summary["resource_types"]:
        CONSOLE.print()
        CONSOLE.print("Resources by type:")
        for resource_type, count in sorted(summary["resource_types"].items(), key=lambda item: -item[1]):
            CONSOLE.print(Text.assemble("  * ", (resource_type, "cyan"), f": {count}"))

    if analysis["resources"]:
        CONSOLE.print()
        CONSOLE.print(Text("Resource Details:", style="bold"))
        for resource in analysis["resources"]:
            CONSOLE.print(Text.assemble("  * ", (resource["full_name"], "bold")))
            for key, value in resource["attributes"].items():
                if value is None or str(value) == "":
                    continue
                CONSOLE.print(Text.assemble(f"    {key}: ", (format_attribute_value(value), "bright_black")))


def _exit_code(report: ChangeReport) -> int:
    return 1 if report.drift_detected else 0


def run(args: argparse.Namespace) -> int:
    """Runs a parsed command and returns the process exit code."""
    config = resolve_config(args)
    logger = setup_logging(config.log_level)

    if args.command == "analyze":
        validate_plan_source(args.source)
        logger.info(f"Analyzing plan from {args.source}")
        plan = load_plan(args.source, region_name=config.aws_region)
        report = build_report(plan)
        emit_report(report, args.output_format, plan=plan, analysis=load_analysis(args.config_file))
        return _exit_code(report)

    if args.command == "inspect":
        analysis = analyze_configuration(read_source(args.config_file))
        if "error" in analysis:
            raise ValueError(analysis["error"])
        if args.output_format == "json":
            print(json.dumps(analysis, indent=2, default=str))
        else:
            print_analysis(analysis)
        return 0

    runner = build_runner(config)

    if args.command == "state":
        result = runner.state_list()
        resources = result.resources if result.success else []
        if args.output_format == "json":
            print(json.dumps({"resources": resources}, indent=2))
        else:
            print_state(resources)
        return 0

    analysis = load_analysis(args.config_file)
    detector = DriftDetector(runner)

    if args.command == "monitor":
        reports = detector.monitor(
            interval_seconds=config.poll_interval_seconds,
            auto_remediate=config.auto_remediate,
            max_iterations=args.max_iterations,
            refresh_only=args.refresh_only,
            on_report=lambda report: emit_report(
                report, args.output_format, plan=detector.last_plan, analysis=analysis
            ),
        )
        return 1 if any(report.drift_detected for report in reports) else 0

    report = detector.detect(
        refresh_only=getattr(args, "refresh_only", False),
        destroy=getattr(args, "destroy", False),
        target=args.target,
    )
    plan = detector.last_plan

    emit_report(report, args.output_format, plan=plan, analysis=analysis)

    if args.command == "apply":
        if not report.drift_detected:
            logger.info("No changes to apply")
            return 0
        if not report.safe_to_remediate and not args.allow_destroy:
            logger.warning("Plan deletes or replaces resources; rerun with --allow-destroy to apply it")
            return 1
        result = runner.apply(plan_file=detector.plan_file).raise_for_status()
        logger.info(result.message)
        return 0

    return _exit_code(report)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the command-line analyzer."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        code = run(args)
    except Exception as e:
        setup_logging().error(f"Error running {args.command}: {str(e)}")
        print(f"ERROR: {str(e)}", file=sys.stderr)
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
