"""
Classification of Terraform change actions.

Terraform reports each planned change as a list of primitive actions. A
replacement shows up as a delete and a create in the same list, in either
order depending on create_before_destroy.
"""

from typing import Iterable

from .exceptions import PlanParseError
from .types import ChangeKind

KNOWN_ACTIONS = frozenset({"no-op", "create", "read", "update", "delete", "forget"})


def classify(actions: Iterable[str]) -> ChangeKind:
    """
    Classify a Terraform actions list into a single change kind.

    Args:
        actions: The 'change.actions' list from a plan resource change

    Returns:
        The ChangeKind for the list

    Raises:
        PlanParseError: If the list is not a list of known action strings
    """
    if isinstance(actions, (str, bytes)) or not isinstance(actions, (list, tuple)):
        raise PlanParseError(f"Actions must be a list, got {type(actions).__name__}")

    action_set = set()
    for action in actions:
        if not isinstance(action, str) or action not in KNOWN_ACTIONS:
            raise PlanParseError(f"Unknown Terraform action: {action!r}")
        action_set.add(action)

    if "delete" in action_set and "create" in action_set:
        return ChangeKind.REPLACE
    if "delete" in action_set:
        return ChangeKind.DELETE
    if "create" in action_set:
        return ChangeKind.CREATE
    if "update" in action_set:
        return ChangeKind.UPDATE
    # no-op, read (data sources) and forget leave live infrastructure alone
    return ChangeKind.NO_OP
