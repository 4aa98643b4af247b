"""
Validation result objects shared by the per-question validators and the
cross-question validator.

A ValidationResult is built fresh on every validation call and is never
mutated afterwards by the code that returned it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    """
    One validation error or warning.

    Properties:
        code: Stable machine-readable code (e.g. "REQUIRED_FIELD")
        message: Human-readable explanation
        field: Question id the issue is attached to (optional)
        severity: Severity.ERROR or Severity.WARNING
        context: Extra data for callers (optional)
    """

    code: str
    message: str
    field: Optional[str] = None
    severity: Severity = Severity.ERROR
    context: Any = None


@dataclass
class ValidationResult:
    """Outcome of a validation call."""

    is_valid: bool = True
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def error_codes(self) -> List[str]:
        return [e.code for e in self.errors]

    @classmethod
    def success(cls, warnings: Optional[List[ValidationIssue]] = None) -> ValidationResult:
        return cls(is_valid=True, errors=[], warnings=list(warnings or []))

    @classmethod
    def failure(
        cls,
        errors: List[ValidationIssue],
        warnings: Optional[List[ValidationIssue]] = None,
    ) -> ValidationResult:
        return cls(is_valid=False, errors=list(errors), warnings=list(warnings or []))

    @classmethod
    def from_issues(
        cls,
        errors: List[ValidationIssue],
        warnings: Optional[List[ValidationIssue]] = None,
    ) -> ValidationResult:
        """Valid exactly when there are no errors."""
        if errors:
            return cls.failure(errors, warnings)
        return cls.success(warnings)


def error(code: str, message: str, field: Optional[str] = None, context: Any = None) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, field=field, severity=Severity.ERROR, context=context)


def warning(code: str, message: str, field: Optional[str] = None, context: Any = None) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, field=field, severity=Severity.WARNING, context=context)
