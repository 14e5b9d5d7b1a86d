"""
Terraform command runner.

All provisioning work is delegated to the terraform binary. This module
runs it as a subprocess in a working directory, captures its output and
turns exit codes and well-known output lines into CommandResult objects.
"""

import json
import os
import re
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .exceptions import TerraformError
from .utils import get_logger

logger = get_logger()

# Exit codes for terraform plan -detailed-exitcode
PLAN_NO_CHANGES = 0
PLAN_HAS_CHANGES = 2

# Error patterns to extract from Terraform output
ERROR_PATTERNS = [
    re.compile(r"│ Error: (.+)"),
    re.compile(r"Error: (.+?)\n"),
    re.compile(r"Failed to (.+)"),
]

ERROR_LINE_MARKERS = ("Error:", "Failed to", "Could not", "Unable to", "Invalid", "Missing")

# Transient failures worth retrying
RETRYABLE_ERROR_PATTERNS = [
    re.compile(r"timeout", re.IGNORECASE),
    re.compile(r"connection.*timed out", re.IGNORECASE),
    re.compile(r"connection.*refused", re.IGNORECASE),
    re.compile(r"rate limit", re.IGNORECASE),
    re.compile(r"throttl", re.IGNORECASE),
    re.compile(r"temporary failure", re.IGNORECASE),
    re.compile(r"network.*unreachable", re.IGNORECASE),
    re.compile(r"could not connect", re.IGNORECASE),
    re.compile(r"connection reset", re.IGNORECASE),
    re.compile(r"RequestLimitExceeded"),
    re.compile(r"ServiceUnavailable"),
]

APPLY_COUNTS_PATTERN = re.compile(r"(\d+) added, (\d+) changed, (\d+) destroyed")
PLAN_COUNTS_PATTERN = re.compile(r"(\d+) to add, (\d+) to change, (\d+) to destroy")
VERSION_PATTERN = re.compile(r"Terraform v(\d+\.\d+\.\d+)")


@dataclass
class CommandResult:
    """Outcome of a single terraform invocation."""

    command: List[str]
    success: bool
    output: str = ""
    error: str = ""
    exit_code: int = -1
    retryable: bool = False
    message: str = ""
    changes: Optional[bool] = None
    data: Any = None
    resources: List[str] = field(default_factory=list)
    valid: Optional[bool] = None
    diagnostics: List[Dict[str, Any]] = field(default_factory=list)
    version: Optional[str] = None
    counts: Dict[str, int] = field(default_factory=dict)

    def raise_for_status(self) -> "CommandResult":
        """Raises TerraformError when the command failed, returns self otherwise."""
        if not self.success:
            details = self.error or self.output
            raise TerraformError(
                f"{self.message or 'Terraform command failed'}: {extract_terraform_error(details)}",
                command=self.command,
                exit_code=self.exit_code,
                output=details,
            )
        return self


def is_retryable(text: str) -> bool:
    return any(pattern.search(text) for pattern in RETRYABLE_ERROR_PATTERNS)


def extract_terraform_error(output: str) -> str:
    """
    Pulls the most useful error message out of terraform output.

    Args:
        output: Combined stdout/stderr text of a failed command

    Returns:
        The first matched error message, the error-looking lines, or the
        last five non-empty lines when nothing recognisable is found
    """
    if not output:
        return output

    for pattern in ERROR_PATTERNS:
        match = pattern.search(output)
        if match:
            return match.group(1).strip()

    lines = output.splitlines()
    error_lines = [line for line in lines if any(marker in line for marker in ERROR_LINE_MARKERS)]
    if error_lines:
        return "\n".join(error_lines).strip()

    meaningful = [line for line in lines if line.strip()]
    return "\n".join(meaningful[-5:]).strip()


class TerraformRunner:
    """Run terraform commands in a working directory."""

    def __init__(
        self,
        work_dir: Union[os.PathLike, str] = ".",
        binary: str = "terraform",
        max_retries: int = 3,
        retry_delay: float = 2,
        timeout_seconds: Optional[int] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> None:
        self.work_dir: Path = Path(os.path.normpath(work_dir))
        self.binary = binary
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout_seconds = timeout_seconds
        self.env = env

        self.work_dir.mkdir(parents=True, exist_ok=True)

    def binary_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def execute(self, args: List[str], success_codes: tuple = (0,)) -> CommandResult:
        """
        Runs terraform with the given arguments and captures its output.

        Args:
            args: Arguments passed after the binary name
            success_codes: Exit codes that count as success

        Returns:
            CommandResult; failures to start the process are reported in the
            result rather than raised
        """
        cmd = [self.binary] + args
        logger.debug(f"Executing: {' '.join(cmd)} (cwd={self.work_dir})")

        if not self.work_dir.is_dir():
            return CommandResult(
                command=cmd,
                success=False,
                error=f"Working directory not found: {self.work_dir}",
                message="Working directory not found",
            )

        env = None
        if self.env:
            env = dict(os.environ)
            env.update(self.env)

        try:
            completed: subprocess.CompletedProcess[str] = subprocess.run(
                cmd,
                cwd=self.work_dir,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                env=env,
            )
        except FileNotFoundError:
            return CommandResult(
                command=cmd,
                success=False,
                error=f"Terraform binary not found: {self.binary}",
                message="Terraform binary not found",
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                command=cmd,
                success=False,
                error=f"Command timeout after {self.timeout_seconds} seconds",
                retryable=True,
                message="Command timed out",
            )

        result = CommandResult(
            command=cmd,
            success=completed.returncode in success_codes,
            output=completed.stdout or "",
            error=completed.stderr or "",
            exit_code=completed.returncode,
        )
        if not result.success and is_retryable(f"{result.output} {result.error}"):
            result.retryable = True
        if not result.success:
            logger.debug(f"Command failed with exit code {result.exit_code}: {result.error.strip()}")
        return result

    def _with_retries(self, operation: Callable[[], CommandResult]) -> CommandResult:
        """Repeats an operation on transient failures with exponential backoff."""
        attempt = 0
        while True:
            result = operation()
            if result.success or not result.retryable or attempt >= self.max_retries:
                return result
            attempt += 1
            delay = self.retry_delay ** attempt
            logger.warning(f"Retryable error: {extract_terraform_error(result.error or result.output)}")
            logger.info(f"Retry {attempt}/{self.max_retries} in {delay}s...")
            time.sleep(delay)

    def init(self, upgrade: bool = False) -> CommandResult:
        """Initialize Terraform"""
        args = ["init", "-no-color", "-input=false"]
        if upgrade:
            args.append("-upgrade")

        result = self._with_retries(lambda: self.execute(args))
        result.message = "Initialization complete" if result.success else "Initialization failed"
        return result

    def plan(
        self,
        out_file: Optional[str] = None,
        destroy: bool = False,
        refresh_only: bool = False,
        target: Optional[str] = None,
    ) -> CommandResult:
        """Run terraform plan with -detailed-exitcode"""
        args = ["plan", "-no-color", "-input=false", "-detailed-exitcode"]
        if destroy:
            args.append("-destroy")
        if refresh_only:
            args.append("-refresh-only")
        if out_file:
            args.append(f"-out={out_file}")
        if target:
            args.append(f"-target={target}")

        result = self.execute(args, success_codes=(PLAN_NO_CHANGES, PLAN_HAS_CHANGES))
        if result.success:
            result.changes = result.exit_code == PLAN_HAS_CHANGES
            result.message = "Plan generated successfully" if result.changes else "No changes required"
            match = PLAN_COUNTS_PATTERN.search(result.output)
            if match:
                result.counts = {
                    "add": int(match.group(1)),
                    "change": int(match.group(2)),
                    "destroy": int(match.group(3)),
                }
        else:
            result.message = "Plan failed"
        return result

    def show_json(self, plan_file: Optional[str] = None) -> CommandResult:
        """Run terraform show -json for a saved plan, or the current state"""
        args = ["show", "-json", "-no-color"]
        if plan_file:
            args.append(plan_file)

        result = self.execute(args)
        if result.success:
            try:
                result.data = json.loads(result.output)
            except json.JSONDecodeError:
                result.success = False
                result.error = "Failed to parse JSON output"
        result.message = "Show complete" if result.success else "Show failed"
        return result

    def apply(
        self,
        plan_file: Optional[str] = None,
        auto_approve: bool = False,
        target: Optional[str] = None,
    ) -> CommandResult:
        """Run terraform apply, either for a saved plan or the current configuration"""
        args = ["apply", "-no-color", "-input=false"]
        if plan_file:
            args.append(plan_file)
        else:
            if auto_approve:
                args.append("-auto-approve")
            if target:
                args.append(f"-target={target}")

        result = self._with_retries(lambda: self.execute(args))
        return self._parse_apply_output(result)

    @staticmethod
    def _parse_apply_output(result: CommandResult) -> CommandResult:
        if not result.success or "Apply complete!" not in result.output:
            result.success = False
            result.message = "Apply may have failed"
            return result

        result.message = "Apply completed successfully"
        match = APPLY_COUNTS_PATTERN.search(result.output)
        if match:
            result.counts = {
                "added": int(match.group(1)),
                "changed": int(match.group(2)),
                "destroyed": int(match.group(3)),
            }
        return result

    def destroy(self, auto_approve: bool = False, target: Optional[str] = None) -> CommandResult:
        """Run terraform destroy"""
        args = ["destroy", "-no-color", "-input=false"]
        if auto_approve:
            args.append("-auto-approve")
        if target:
            args.append(f"-target={target}")

        result = self._with_retries(lambda: self.execute(args))
        if result.success and "Destroy complete!" in result.output:
            result.message = "Resources destroyed successfully"
        else:
            result.success = False
            result.message = "Destroy may have failed"
        return result

    def output(self, name: Optional[str] = None, json_format: bool = True) -> CommandResult:
        """Get Terraform outputs"""
        args = ["output", "-no-color"]
        if json_format:
            args.append("-json")
        if name:
            args.append(name)

        result = self.execute(args)
        if json_format and result.success:
            try:
                result.data = json.loads(result.output)
            except json.JSONDecodeError:
                result.success = False
                result.error = "Failed to parse JSON output"
        return result

    def state_list(self) -> CommandResult:
        """List resource addresses in the current state"""
        result = self.execute(["state", "list", "-no-color"])
        if result.success:
            result.resources = [line for line in result.output.splitlines() if line.strip()]
        return result

    def validate(self) -> CommandResult:
        """Validate the configuration"""
        # validate -json still prints its diagnostics document on exit code 1
        result = self.execute(["validate", "-no-color", "-json"], success_codes=(0, 1))
        try:
            validation = json.loads(result.output)
        except json.JSONDecodeError:
            result.success = False
            result.error = result.error or "Failed to parse validation output"
            return result

        result.valid = bool(validation.get("valid"))
        result.diagnostics = validation.get("diagnostics") or []
        result.success = result.exit_code == 0
        return result

    def version(self) -> CommandResult:
        """Get the terraform version"""
        result = self.execute(["version", "-json"])
        if result.success:
            try:
                result.version = json.loads(result.output).get("terraform_version")
            except json.JSONDecodeError:
                match = VERSION_PATTERN.search(result.output)
                if match:
                    result.version = match.group(1)
        return result

    def refresh(self) -> CommandResult:
        """Refresh state against live infrastructure"""
        result = self.execute(["refresh", "-no-color", "-input=false"])
        result.message = "Refresh completed successfully" if result.success else "Refresh failed"
        return result

    def fmt(self, check: bool = False, recursive: bool = True) -> CommandResult:
        """Format configuration files"""
        args = ["fmt"]
        if check:
            args.append("-check")
        if recursive:
            args.append("-recursive")

        result = self.execute(args)
        if result.success:
            result.resources = [line for line in result.output.splitlines() if line.strip()]
            result.message = (
                "Format check passed" if check else f"Formatted {len(result.resources)} files"
            )
        else:
            result.message = "Format failed"
        return result

    def import_resource(self, resource_address: str, resource_id: str) -> CommandResult:
        """Import an existing resource into state"""
        args = ["import", "-no-color", "-input=false", resource_address, resource_id]

        result = self._with_retries(lambda: self.execute(args))
        if result.success and "Import successful!" in result.output:
            result.message = "Resource imported successfully"
        else:
            result.success = False
            result.message = "Import may have failed"
        return result
