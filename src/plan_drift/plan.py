"""
Terraform JSON plan parsing.

This module turns the document produced by 'terraform show -json <planfile>'
into typed records. Only the parts of the plan format the analyzer reads are
modelled; everything else stays available through Plan.raw.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .classification import classify
from .exceptions import PlanParseError
from .types import ChangeKind, JSONObject, PlanDocument
from .utils import get_logger, parse_json_document, read_source

logger = get_logger()


@dataclass
class ResourceChange:
    """A single entry of 'resource_changes' or 'resource_drift'."""

    address: str
    type: str
    name: str
    actions: List[str]
    mode: str = "managed"
    module_address: Optional[str] = None
    provider_name: Optional[str] = None
    before: Optional[JSONObject] = None
    after: Optional[JSONObject] = None
    after_unknown: JSONObject = field(default_factory=dict)
    before_sensitive: Any = None
    after_sensitive: Any = None
    action_reason: Optional[str] = None

    @property
    def kind(self) -> ChangeKind:
        return classify(self.actions)

    def changed_attributes(self) -> List[str]:
        """Top-level attribute names that differ between before and after."""
        before = self.before if isinstance(self.before, dict) else {}
        after = self.after if isinstance(self.after, dict) else {}
        unknown = self.after_unknown if isinstance(self.after_unknown, dict) else {}

        changed = set()
        for key in set(before) | set(after):
            if before.get(key) != after.get(key):
                changed.add(key)
        for key, value in unknown.items():
            if value is True:
                changed.add(key)
        return sorted(changed)

    def is_sensitive(self, attribute: str) -> bool:
        for marks in (self.before_sensitive, self.after_sensitive):
            if marks is True:
                return True
            if isinstance(marks, dict) and marks.get(attribute):
                return True
        return False


@dataclass
class OutputChange:
    """A single entry of 'output_changes'."""

    name: str
    actions: List[str]
    before: Any = None
    after: Any = None
    sensitive: bool = False

    @property
    def kind(self) -> ChangeKind:
        return classify(self.actions)


@dataclass
class Plan:
    """Parsed Terraform plan."""

    resource_changes: List[ResourceChange] = field(default_factory=list)
    output_changes: List[OutputChange] = field(default_factory=list)
    resource_drift: List[ResourceChange] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    format_version: Optional[str] = None
    terraform_version: Optional[str] = None
    errored: bool = False
    raw: PlanDocument = field(default_factory=dict, repr=False)


def _parse_resource_change(entry: Any, section: str, index: int) -> ResourceChange:
    if not isinstance(entry, dict):
        raise PlanParseError(f"{section}[{index}] is not an object")

    address = entry.get("address")
    if not address or not isinstance(address, str):
        raise PlanParseError(f"{section}[{index}] has no valid address")

    change = entry.get("change")
    if not isinstance(change, dict) or "actions" not in change:
        raise PlanParseError(f"{section}[{index}] ({address}) has no change.actions")

    actions = change["actions"]
    # Validates the actions list up front so a bad plan fails at parse time
    classify(actions)

    parts = address.split(".")
    return ResourceChange(
        address=address,
        type=entry.get("type") or (parts[-2] if len(parts) >= 2 else ""),
        name=entry.get("name") or parts[-1],
        actions=list(actions),
        mode=entry.get("mode", "managed"),
        module_address=entry.get("module_address"),
        provider_name=entry.get("provider_name"),
        before=change.get("before"),
        after=change.get("after"),
        after_unknown=change.get("after_unknown") or {},
        before_sensitive=change.get("before_sensitive"),
        after_sensitive=change.get("after_sensitive"),
        action_reason=entry.get("action_reason"),
    )


def _parse_resource_section(document: PlanDocument, section: str) -> List[ResourceChange]:
    entries = document.get(section) or []
    if not isinstance(entries, list):
        raise PlanParseError(f"'{section}' must be a list")
    return [_parse_resource_change(entry, section, idx) for idx, entry in enumerate(entries)]


def _parse_output_changes(document: PlanDocument) -> List[OutputChange]:
    entries = document.get("output_changes") or {}
    if not isinstance(entries, dict):
        raise PlanParseError("'output_changes' must be an object")

    outputs = []
    for name, change in entries.items():
        if not isinstance(change, dict) or "actions" not in change:
            raise PlanParseError(f"output_changes.{name} has no actions")
        classify(change["actions"])
        outputs.append(
            OutputChange(
                name=name,
                actions=list(change["actions"]),
                before=change.get("before"),
                after=change.get("after"),
                sensitive=bool(change.get("after_sensitive") or change.get("before_sensitive")),
            )
        )
    return outputs


def parse_plan(document: Union[str, bytes, PlanDocument]) -> Plan:
    """
    Parses a Terraform JSON plan.

    Args:
        document: Raw JSON text or bytes, or an already decoded dict

    Returns:
        Plan with classified resource and output changes

    Raises:
        PlanParseError: If the document is not a well-formed plan
    """
    data = parse_json_document(document, description="plan")

    plan = Plan(
        resource_changes=_parse_resource_section(data, "resource_changes"),
        output_changes=_parse_output_changes(data),
        resource_drift=_parse_resource_section(data, "resource_drift"),
        variables=data.get("variables") or {},
        format_version=data.get("format_version"),
        terraform_version=data.get("terraform_version"),
        errored=bool(data.get("errored", False)),
        raw=data,
    )
    logger.info(
        f"Parsed plan with {len(plan.resource_changes)} resource changes, "
        f"{len(plan.output_changes)} output changes and "
        f"{len(plan.resource_drift)} drifted resources"
    )
    return plan


def load_plan(source: str, region_name: Optional[str] = None) -> Plan:
    """
    Reads and parses a plan from 's3://', 'local://' or a file path.
    """
    content = read_source(source, logger=logger, region_name=region_name)
    return parse_plan(content)
