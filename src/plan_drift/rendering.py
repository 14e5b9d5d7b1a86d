"""
Terminal rendering of change reports.

Reports are printed through a rich Console. Colour is applied with rich
styles; render_text() drives the same code through a colourless console so
the output can be written to files or parsed back with parse_summary().
"""

import io
import json
from typing import Any, Dict, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .config_analysis import find_resource_info
from .plan import Plan, ResourceChange
from .report import ChangeReport, summary_line
from .types import CHANGE_KIND_ORDER, ChangeKind, ConfigurationAnalysis, Severity

CONSOLE = Console()

RULE_WIDTH = 60
MAX_VALUE_LENGTH = 50
INLINE_CHANGE_LENGTH = 30

ACTION_STYLES: Dict[ChangeKind, Dict[str, str]] = {
    ChangeKind.CREATE: {"icon": "+", "color": "green", "label": "CREATE"},
    ChangeKind.UPDATE: {"icon": "~", "color": "yellow", "label": "UPDATE"},
    ChangeKind.DELETE: {"icon": "-", "color": "red", "label": "DELETE"},
    ChangeKind.REPLACE: {"icon": "+/-", "color": "magenta", "label": "REPLACE"},
}

SEVERITY_STYLES = {
    Severity.NONE: "green",
    Severity.LOW: "cyan",
    Severity.MEDIUM: "yellow",
    Severity.HIGH: "bold red",
}


def format_attribute_value(value: Any) -> str:
    """Formats a configuration or state value for a single display line."""
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"))
    if isinstance(value, str):
        return f"{value[:47]}..." if len(value) > MAX_VALUE_LENGTH else value
    return str(value)


def format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return json.dumps(value)
    return str(value)


def format_value_change(old_value: str, new_value: str) -> Text:
    """Inline 'old → new' for short values, a two line diff otherwise."""
    if len(old_value) > INLINE_CHANGE_LENGTH or len(new_value) > INLINE_CHANGE_LENGTH:
        return Text.assemble(
            ("\n        - " + old_value, "red"),
            ("\n        + " + new_value, "green"),
        )
    return Text.assemble((old_value, "red"), " → ", (new_value, "green"))


def _attribute_change_text(resource_change: ResourceChange, attribute: str) -> Text:
    before = resource_change.before if isinstance(resource_change.before, dict) else {}
    after = resource_change.after if isinstance(resource_change.after, dict) else {}
    unknown = resource_change.after_unknown if isinstance(resource_change.after_unknown, dict) else {}

    if resource_change.is_sensitive(attribute):
        old_value = new_value = "(sensitive value)"
    else:
        old_value = format_value(before.get(attribute))
        if unknown.get(attribute) is True:
            new_value = "(known after apply)"
        else:
            new_value = format_value(after.get(attribute))

    line = Text("      ")
    line.append("~", style="yellow")
    line.append(f" {attribute} = ")
    line.append_text(format_value_change(old_value, new_value))
    return line


def _action_detail(kind: ChangeKind, resource_type: str) -> Text:
    if kind is ChangeKind.CREATE:
        return Text(f"    -> Creating new {resource_type}")
    if kind is ChangeKind.UPDATE:
        return Text(f"    -> Modifying existing {resource_type}")
    if kind is ChangeKind.DELETE:
        return Text.assemble("    -> ", ("Warning: Will destroy existing resource", "red"))
    return Text.assemble("    -> ", ("Warning: Will replace (destroy + create)", "magenta"))


def _render_group(
    console: Console,
    kind: ChangeKind,
    report: ChangeReport,
    changes_by_address: Dict[str, ResourceChange],
    analysis: Optional[ConfigurationAnalysis],
) -> None:
    addresses = report.addresses[kind]
    if not addresses:
        return

    style = ACTION_STYLES[kind]
    console.print()
    console.print(
        Text(f"{style['icon']} {style['label']} ({len(addresses)}):", style=f"bold {style['color']}")
    )

    for address in addresses:
        console.print(Text.assemble("  * ", (address, "bold")))
        resource_change = changes_by_address.get(address)
        if resource_change is not None:
            resource_type = resource_change.type
        else:
            parts = address.split(".")
            resource_type = parts[-2] if len(parts) >= 2 else address
        console.print(_action_detail(kind, resource_type))

        if resource_change is not None and resource_change.action_reason:
            console.print(Text(f"      reason: {resource_change.action_reason}", style="bright_black"))

        info = find_resource_info(address, analysis)
        if info:
            shown = 0
            for key, value in info["attributes"].items():
                if value is None or str(value) == "" or shown >= 3:
                    continue
                console.print(
                    Text.assemble(f"      {key}: ", (format_attribute_value(value), "bright_black"))
                )
                shown += 1

        if resource_change is not None and kind in (ChangeKind.UPDATE, ChangeKind.REPLACE):
            for attribute in resource_change.changed_attributes():
                console.print(_attribute_change_text(resource_change, attribute))


def _render_counts_table(console: Console, report: ChangeReport) -> None:
    table = Table(title="Change Summary", show_header=True, header_style="bold magenta")
    table.add_column("Action", style="cyan", width=12)
    table.add_column("Count", justify="right", width=8)
    for kind in CHANGE_KIND_ORDER:
        style = ACTION_STYLES.get(kind, {"color": "white"})
        table.add_row(Text(kind.value, style=style["color"]), str(report.counts[kind]))
    console.print()
    console.print(table)


def render_report(
    report: ChangeReport,
    plan: Optional[Plan] = None,
    analysis: Optional[ConfigurationAnalysis] = None,
    console: Optional[Console] = None,
) -> None:
    """
    Prints a human-readable change report grouped by action.

    Args:
        report: Aggregated report to print
        plan: Parsed plan, used for per-attribute diffs when given
        analysis: Configuration analysis, used for key attributes when given
        console: Console to print to, defaults to the module console
    """
    console = console or CONSOLE
    changes_by_address = {rc.address: rc for rc in plan.resource_changes} if plan else {}

    console.print("=" * RULE_WIDTH)
    console.print(Text("TERRAFORM PLAN DRIFT REPORT", style="bold blue"))
    console.print("=" * RULE_WIDTH)
    if report.terraform_version:
        console.print(f"Terraform version: {report.terraform_version}")
    console.print(f"Generated: {report.timestamp}")

    if not report.has_changes:
        console.print()
        console.print(Text("No changes. Infrastructure is up-to-date.", style="bold green"))
    else:
        console.print()
        console.print(Text("Resource Changes", style="bold"))
        console.print("-" * RULE_WIDTH)
        for kind in (ChangeKind.CREATE, ChangeKind.UPDATE, ChangeKind.DELETE, ChangeKind.REPLACE):
            _render_group(console, kind, report, changes_by_address, analysis)

    if report.drifted:
        console.print()
        console.print(Text(f"Changed outside of Terraform ({len(report.drifted)}):", style="bold yellow"))
        for address in report.drifted:
            console.print(Text(f"  ! {address}"))

    output_names = [
        (kind, name)
        for kind in CHANGE_KIND_ORDER
        if kind is not ChangeKind.NO_OP
        for name in report.output_changes.get(kind, [])
    ]
    if output_names:
        console.print()
        console.print(Text("Changes to Outputs:", style="bold"))
        for kind, name in output_names:
            style = ACTION_STYLES[kind]
            console.print(Text(f"  {style['icon']} {name}", style=style["color"]))

    _render_counts_table(console, report)

    console.print()
    console.print(summary_line(report))
    console.print(
        Text.assemble(
            "Severity: ",
            (report.severity.name, SEVERITY_STYLES[report.severity]),
        )
    )
    if report.safe_to_remediate:
        console.print(Text("Safe to remediate: yes", style="green"))
    else:
        console.print(Text("Safe to remediate: no (plan destroys or replaces resources)", style="red"))
    console.print("=" * RULE_WIDTH)


def render_text(
    report: ChangeReport,
    plan: Optional[Plan] = None,
    analysis: Optional[ConfigurationAnalysis] = None,
    width: int = 120,
) -> str:
    """Renders the report without colour and returns it as a string."""
    buffer = io.StringIO()
    console = Console(
        file=buffer,
        color_system=None,
        force_terminal=False,
        highlight=False,
        soft_wrap=True,
        width=width,
    )
    render_report(report, plan=plan, analysis=analysis, console=console)
    return buffer.getvalue()
