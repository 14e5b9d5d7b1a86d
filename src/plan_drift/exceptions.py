"""
Exceptions raised by the Terraform plan drift analyzer.
"""

from typing import List, Optional


class PlanParseError(ValueError):
    """Raised when a Terraform JSON document is malformed."""


class TerraformError(Exception):
    """Raised when a terraform command fails."""

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        exit_code: Optional[int] = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command or []
        self.exit_code = exit_code
        self.output = output

    def __str__(self) -> str:
        base = super().__str__()
        if self.command:
            return f"{base} (command: {' '.join(self.command)}, exit code: {self.exit_code})"
        return base
