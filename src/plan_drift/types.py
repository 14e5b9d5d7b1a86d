"""
Type definitions for the Terraform plan drift analyzer.

This module contains the shared enums and type aliases used across the
package, replacing loose Any types with names that describe the data.
"""

from enum import Enum, IntEnum
from typing import Any, Dict, List

# S3 client type - boto3 clients are generated at runtime and have no static stubs
S3Client = Any


class ChangeKind(str, Enum):
    """Classified outcome of a single resource change."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REPLACE = "replace"
    NO_OP = "no-op"


# Display and aggregation order for change groups
CHANGE_KIND_ORDER = [
    ChangeKind.CREATE,
    ChangeKind.UPDATE,
    ChangeKind.DELETE,
    ChangeKind.REPLACE,
    ChangeKind.NO_OP,
]


class Severity(IntEnum):
    """Drift severity level. Higher value = more severe."""

    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3


# Decoded JSON objects from Terraform output
JSONObject = Dict[str, Any]

# Plan document types
PlanDocument = Dict[str, Any]
ChangeCounts = Dict[ChangeKind, int]
ChangeAddresses = Dict[ChangeKind, List[str]]

# Generated Terraform configuration analysis
ResourceInfo = Dict[str, Any]
ConfigurationAnalysis = Dict[str, Any]
