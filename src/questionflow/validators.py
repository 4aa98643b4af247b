"""
Per-question-type answer validation.

One validator per QuestionType variant; `validate_answer` dispatches on the
type tag and handles every member of the closed enum explicitly.

Validators never raise on bad input: they return a ValidationResult whose
errors carry stable codes (REQUIRED_FIELD, BELOW_MINIMUM, ...).
"""

from __future__ import annotations

import math
import re
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from .config import FlowSettings
from .functions import parse_date
from .model import TODAY, Question, QuestionType
from .results import ValidationIssue, ValidationResult, error, warning
from .values import is_number

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _required_failure(question: Question) -> ValidationResult:
    return ValidationResult.failure([error("REQUIRED_FIELD", "This field is required", question.id)])


def _decimal_places(value: float) -> int:
    if not math.isfinite(value):
        return 0
    # repr gives the shortest round-tripping form, including 1e-05
    exponent = Decimal(repr(value)).normalize().as_tuple().exponent
    return max(0, -exponent)


def validate_text(question: Question, value: Any) -> ValidationResult:
    if _is_blank(value):
        return _required_failure(question) if question.required else ValidationResult.success()
    if not isinstance(value, str):
        return ValidationResult.failure([error("INVALID_FORMAT", "Please enter text", question.id)])

    rules = question.rules
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    if rules.min_length is not None and len(value) < rules.min_length:
        errors.append(error(
            "MIN_LENGTH",
            f"Minimum length is {rules.min_length} characters (current: {len(value)})",
            question.id,
        ))
    if rules.max_length is not None and len(value) > rules.max_length:
        errors.append(error(
            "MAX_LENGTH",
            f"Maximum length is {rules.max_length} characters (current: {len(value)})",
            question.id,
        ))
    if rules.pattern and re.search(rules.pattern, value) is None:
        errors.append(error("INVALID_PATTERN", rules.pattern_message or "Invalid format", question.id))

    if rules.max_length is not None and len(value) > rules.max_length * 0.9:
        warnings.append(warning(
            "APPROACHING_LIMIT",
            f"Approaching character limit ({len(value)}/{rules.max_length})",
            question.id,
        ))

    return ValidationResult.from_issues(errors, warnings)


def validate_email(question: Question, value: Any) -> ValidationResult:
    if _is_blank(value):
        return _required_failure(question) if question.required else ValidationResult.success()
    if not isinstance(value, str) or not _EMAIL_RE.match(value.strip()):
        return ValidationResult.failure([error("INVALID_EMAIL", "Please enter a valid email address", question.id)])

    domains = question.rules.custom_domains
    if domains:
        domain = value.strip().split("@", 1)[1].lower()
        if domain not in {d.lower() for d in domains}:
            return ValidationResult.failure([error(
                "INVALID_DOMAIN",
                f"Email must be from one of these domains: {', '.join(domains)}",
                question.id,
            )])
    return ValidationResult.success()


def _check_bounds(question: Question, value: float, minimum: Optional[float], maximum: Optional[float],
                  errors: List[ValidationIssue], noun: str = "Value") -> None:
    if minimum is not None and value < minimum:
        errors.append(error("BELOW_MINIMUM", f"{noun} must be at least {minimum}", question.id))
    if maximum is not None and value > maximum:
        errors.append(error("ABOVE_MAXIMUM", f"{noun} must be no more than {maximum}", question.id))


def validate_number(question: Question, value: Any) -> ValidationResult:
    if value is None:
        return _required_failure(question) if question.required else ValidationResult.success()
    if not is_number(value) or value != value:  # NaN
        return ValidationResult.failure([error("INVALID_NUMBER", "Please enter a valid number", question.id)])

    rules = question.rules
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    if rules.integer and not float(value).is_integer():
        errors.append(error("MUST_BE_INTEGER", "Please enter a whole number", question.id))
    _check_bounds(question, value, rules.min, rules.max, errors)
    if rules.precision is not None and _decimal_places(value) > rules.precision:
        errors.append(error(
            "TOO_MANY_DECIMALS",
            f"Maximum {rules.precision} decimal places allowed",
            question.id,
        ))

    if rules.min is not None and rules.max is not None:
        span = rules.max - rules.min
        if value < rules.min + span * 0.1:
            warnings.append(warning("NEAR_MINIMUM", "Value is near the minimum allowed", question.id))
        if value > rules.max - span * 0.1:
            warnings.append(warning("NEAR_MAXIMUM", "Value is near the maximum allowed", question.id))

    return ValidationResult.from_issues(errors, warnings)


def validate_rating(question: Question, value: Any, settings: Optional[FlowSettings] = None) -> ValidationResult:
    if value is None:
        return _required_failure(question) if question.required else ValidationResult.success()
    if not is_number(value) or value != value:
        return ValidationResult.failure([error("INVALID_RATING", "Please enter a valid rating", question.id)])

    settings = settings or FlowSettings()
    rules = question.rules
    minimum = rules.min if rules.min is not None else settings.rating_min
    maximum = rules.max if rules.max is not None else settings.rating_max

    errors: List[ValidationIssue] = []
    if not float(value).is_integer():
        errors.append(error("MUST_BE_INTEGER", "Rating must be a whole number", question.id))
    _check_bounds(question, value, minimum, maximum, errors, noun="Rating")
    return ValidationResult.from_issues(errors)


def validate_single_choice(question: Question, value: Any) -> ValidationResult:
    if _is_blank(value):
        return _required_failure(question) if question.required else ValidationResult.success()
    if not isinstance(value, str) or (question.options and value not in question.option_values):
        return ValidationResult.failure([error("INVALID_OPTION", "Please select a valid option", question.id)])
    return ValidationResult.success()


def validate_multiple_choice(question: Question, value: Any) -> ValidationResult:
    if value is None or (isinstance(value, (list, tuple)) and len(value) == 0):
        return _required_failure(question) if question.required else ValidationResult.success()
    if not isinstance(value, (list, tuple)):
        return ValidationResult.failure([error("INVALID_OPTIONS", "Please select from the listed options", question.id)])

    rules = question.rules
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    if rules.min_selections is not None and len(value) < rules.min_selections:
        errors.append(error(
            "INSUFFICIENT_SELECTIONS",
            f"Please select at least {rules.min_selections} options",
            question.id,
        ))
    if rules.max_selections is not None and len(value) > rules.max_selections:
        errors.append(error(
            "TOO_MANY_SELECTIONS",
            f"Please select no more than {rules.max_selections} options",
            question.id,
        ))
    if question.options:
        valid = question.option_values
        invalid = [v for v in value if not isinstance(v, str) or v not in valid]
        if invalid:
            errors.append(error(
                "INVALID_OPTIONS",
                f"Invalid selections: {', '.join(str(v) for v in invalid)}",
                question.id,
            ))

    if rules.max_selections is not None and len(value) > rules.max_selections * 0.8:
        warnings.append(warning(
            "APPROACHING_LIMIT",
            f"Approaching selection limit ({len(value)}/{rules.max_selections})",
            question.id,
        ))

    return ValidationResult.from_issues(errors, warnings)


def validate_boolean(question: Question, value: Any) -> ValidationResult:
    if value is None:
        return _required_failure(question) if question.required else ValidationResult.success()
    if not isinstance(value, bool):
        return ValidationResult.failure([error("INVALID_BOOLEAN", "Please enter a valid boolean value", question.id)])
    if question.rules.must_be_true and value is not True:
        return ValidationResult.failure([error("MUST_BE_TRUE", "This field must be accepted", question.id)])
    return ValidationResult.success()


def resolve_date_bound(bound: Optional[str], today: date) -> Optional[date]:
    """Turn a configured date bound ("today" or ISO date) into a date."""
    if bound is None:
        return None
    if isinstance(bound, str) and bound.strip().lower() == TODAY:
        return today
    return parse_date(bound)


def validate_date(question: Question, value: Any, today: Optional[date] = None) -> ValidationResult:
    if _is_blank(value):
        return _required_failure(question) if question.required else ValidationResult.success()

    if isinstance(value, date):
        answered: Optional[date] = parse_date(value)
    elif isinstance(value, str) and _DATE_RE.match(value.strip()):
        answered = parse_date(value)
        if answered is None:
            return ValidationResult.failure([error("INVALID_DATE", "Please enter a valid date", question.id)])
    else:
        return ValidationResult.failure([error("INVALID_FORMAT", "Please enter date in YYYY-MM-DD format", question.id)])

    today = today or date.today()
    rules = question.rules
    errors: List[ValidationIssue] = []

    minimum = resolve_date_bound(rules.min_date, today)
    if minimum is not None and answered < minimum:
        errors.append(error("DATE_TOO_EARLY", f"Date must be on or after {minimum.isoformat()}", question.id))
    maximum = resolve_date_bound(rules.max_date, today)
    if maximum is not None and answered > maximum:
        errors.append(error("DATE_TOO_LATE", f"Date must be on or before {maximum.isoformat()}", question.id))

    return ValidationResult.from_issues(errors)


def validate_answer(
    question: Question,
    value: Any,
    today: Optional[date] = None,
    settings: Optional[FlowSettings] = None,
) -> ValidationResult:
    """
    Validate one answer against its question's type rules.

    Raises:
        TypeError: the question carries a type tag with no validator
    """
    qtype = question.type
    if qtype == QuestionType.TEXT:
        return validate_text(question, value)
    elif qtype == QuestionType.NUMBER:
        return validate_number(question, value)
    elif qtype == QuestionType.EMAIL:
        return validate_email(question, value)
    elif qtype == QuestionType.SINGLE_CHOICE:
        return validate_single_choice(question, value)
    elif qtype == QuestionType.MULTIPLE_CHOICE:
        return validate_multiple_choice(question, value)
    elif qtype == QuestionType.BOOLEAN:
        return validate_boolean(question, value)
    elif qtype == QuestionType.DATE:
        return validate_date(question, value, today=today)
    elif qtype == QuestionType.RATING:
        return validate_rating(question, value, settings=settings)
    raise TypeError(f"No validator for question type {qtype!r}")


__all__ = [
    "resolve_date_bound",
    "validate_answer",
    "validate_boolean",
    "validate_date",
    "validate_email",
    "validate_multiple_choice",
    "validate_number",
    "validate_rating",
    "validate_single_choice",
    "validate_text",
]
