"""
Cross-question validation.

Rules whose satisfaction depends on two or more answers jointly:

    DependencyRule     answering A requires answering B
    ConsistencyRule    listed answers must all match (or all differ)
    CompletenessRule   listed questions must all be answered

Rules are immutable and supplied per questionnaire. Validation is a pure
function over an answer snapshot: the same snapshot and rules always give
an equal ValidationResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .model import Question
from .results import ValidationIssue, ValidationResult, error
from .values import has_value, strict_equals

DEPENDENCY_VIOLATION = "DEPENDENCY_VIOLATION"
CONSISTENCY_VIOLATION = "CONSISTENCY_VIOLATION"
INCOMPLETE = "INCOMPLETE"


@dataclass(frozen=True)
class DependencyRule:
    """
    If `dependent_question` is answered, `required_question` must be too.

    An unanswered dependent question never triggers the rule.
    """

    dependent_question: str
    required_question: str
    message: Optional[str] = None
    type: str = field(default="dependency", init=False)


@dataclass(frozen=True)
class ConsistencyRule:
    """
    Answers of `questions` must all match (must_match=True) or be pairwise
    different (must_match=False). Unanswered questions are left out.
    """

    questions: Tuple[str, ...]
    must_match: bool = True
    message: Optional[str] = None
    type: str = field(default="consistency", init=False)

    def __post_init__(self) -> None:
        if not isinstance(self.questions, tuple):
            object.__setattr__(self, "questions", tuple(self.questions))


@dataclass(frozen=True)
class CompletenessRule:
    """Every id in `required_questions` must have a non-empty answer."""

    required_questions: Tuple[str, ...]
    message: Optional[str] = None
    type: str = field(default="completeness", init=False)

    def __post_init__(self) -> None:
        if not isinstance(self.required_questions, tuple):
            object.__setattr__(self, "required_questions", tuple(self.required_questions))


CrossValidationRule = Union[DependencyRule, ConsistencyRule, CompletenessRule]


def rule_question_ids(rule: CrossValidationRule) -> List[str]:
    """All question ids a rule mentions, in declaration order."""
    if isinstance(rule, DependencyRule):
        return [rule.dependent_question, rule.required_question]
    if isinstance(rule, ConsistencyRule):
        return list(rule.questions)
    if isinstance(rule, CompletenessRule):
        return list(rule.required_questions)
    raise TypeError(f"Unsupported rule type: {type(rule)}")


class CrossQuestionValidator:
    """Evaluates cross-validation rules against an answer snapshot."""

    def validate(
        self,
        answers: Mapping[str, Any],
        questions: Sequence[Question],
        rules: Sequence[CrossValidationRule],
    ) -> ValidationResult:
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []
        text_by_id = {q.id: q.text for q in questions}

        for rule in rules:
            errors.extend(self._evaluate_rule(rule, answers, text_by_id))

        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    def _evaluate_rule(
        self,
        rule: CrossValidationRule,
        answers: Mapping[str, Any],
        text_by_id: Dict[str, str],
    ) -> List[ValidationIssue]:
        if isinstance(rule, DependencyRule):
            return self._validate_dependency(rule, answers)
        if isinstance(rule, ConsistencyRule):
            return self._validate_consistency(rule, answers)
        if isinstance(rule, CompletenessRule):
            return self._validate_completeness(rule, answers, text_by_id)
        raise TypeError(f"Unsupported rule type: {type(rule)}")

    def _validate_dependency(self, rule: DependencyRule, answers: Mapping[str, Any]) -> List[ValidationIssue]:
        if has_value(answers.get(rule.dependent_question)) and not has_value(answers.get(rule.required_question)):
            return [error(
                DEPENDENCY_VIOLATION,
                rule.message or f"{rule.required_question} is required when {rule.dependent_question} is answered",
                field=rule.required_question,
                context={"dependent_question": rule.dependent_question},
            )]
        return []

    def _validate_consistency(self, rule: ConsistencyRule, answers: Mapping[str, Any]) -> List[ValidationIssue]:
        present = [(q, answers.get(q)) for q in rule.questions if has_value(answers.get(q))]
        if len(present) < 2:
            return []

        pairs = list(combinations(present, 2))
        if rule.must_match:
            violated = any(not strict_equals(a, b) for (_, a), (_, b) in pairs)
            default_message = "These fields must match"
        else:
            violated = any(strict_equals(a, b) for (_, a), (_, b) in pairs)
            default_message = "These fields must all be different"

        if violated:
            return [error(
                CONSISTENCY_VIOLATION,
                rule.message or default_message,
                context={"questions": [q for q, _ in present], "must_match": rule.must_match},
            )]
        return []

    def _validate_completeness(
        self,
        rule: CompletenessRule,
        answers: Mapping[str, Any],
        text_by_id: Dict[str, str],
    ) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for question_id in rule.required_questions:
            if has_value(answers.get(question_id)):
                continue
            question_text = text_by_id.get(question_id) or question_id
            issues.append(error(
                INCOMPLETE,
                rule.message or f'Required question "{question_text}" must be answered',
                field=question_id,
            ))
        return issues


__all__ = [
    "CONSISTENCY_VIOLATION",
    "DEPENDENCY_VIOLATION",
    "INCOMPLETE",
    "CompletenessRule",
    "ConsistencyRule",
    "CrossQuestionValidator",
    "CrossValidationRule",
    "DependencyRule",
    "rule_question_ids",
]
