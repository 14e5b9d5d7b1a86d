"""
Configuration loader for the Terraform plan drift analyzer.
"""

import os
from dataclasses import dataclass
from typing import Optional

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
VALID_SOURCE_PREFIXES = ("s3://", "local://")
TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off", "")


@dataclass
class Config:
    """Configuration class for the analyzer."""

    plan_source: Optional[str] = None
    working_dir: str = "."
    terraform_binary: str = "terraform"
    aws_region: Optional[str] = None
    log_level: str = "INFO"
    max_retries: int = 3
    retry_delay_seconds: int = 2
    timeout_seconds: int = 1800
    poll_interval_seconds: int = 300
    auto_remediate: bool = False


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def _bool_from_env(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def validate_plan_source(plan_source: str) -> None:
    """
    Validates a plan source location.

    Raises:
        ValueError: For URL schemes other than s3:// and local://
    """
    if "://" in plan_source and not plan_source.startswith(VALID_SOURCE_PREFIXES):
        raise ValueError(
            "PLAN_SOURCE must be a file path or a location starting with s3:// or local://"
        )


def load_config() -> Config:
    """
    Loads and validates configuration from the environment.

    Returns:
        Config object with validated settings

    Raises:
        ValueError: If configuration is invalid
    """
    plan_source = os.environ.get("PLAN_SOURCE") or None
    if plan_source:
        validate_plan_source(plan_source)

    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    if log_level not in VALID_LOG_LEVELS:
        raise ValueError(f"LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}")

    return Config(
        plan_source=plan_source,
        working_dir=os.environ.get("TERRAFORM_WORKING_DIR", "."),
        terraform_binary=os.environ.get("TERRAFORM_BINARY", "terraform"),
        aws_region=os.environ.get("AWS_REGION"),
        log_level=log_level,
        max_retries=_int_from_env("MAX_RETRIES", 3),
        retry_delay_seconds=_int_from_env("RETRY_DELAY_SECONDS", 2),
        timeout_seconds=_int_from_env("TIMEOUT_SECONDS", 1800),
        poll_interval_seconds=_int_from_env("POLL_INTERVAL_SECONDS", 300),
        auto_remediate=_bool_from_env("AUTO_REMEDIATE", False),
    )
