"""
Conditional visibility evaluation.

Decides whether a question is shown given the answers accumulated so far.

Policy summary:
    - No condition: always visible
    - visible_if must hold and hide_if must not; AllOf groups AND
      their members
    - Referenced answer absent: the condition does not hold, for EVERY
      operator including notEquals (closed-world). visible_if then hides
      the question; hide_if leaves it shown
    - Malformed condition (forward reference, unknown function, numeric
      comparison on non-numbers): hidden, never raised to the session

Function-call comparison values are resolved through a FunctionRegistry
before the comparison is applied.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping, Optional

from .expressions import Condition, ConditionGroup, ConditionOperator, FunctionCall, group_conditions
from .functions import EvaluationContext, FunctionRegistry, FunctionRegistryError
from .model import Question, Questionnaire
from .values import strict_equals, to_number

logger = logging.getLogger(__name__)


class ConditionEvaluationError(Exception):
    """Raised when a condition cannot be evaluated."""

    def __init__(self, message: str, condition: Optional[Condition] = None):
        super().__init__(message)
        self.condition = condition


class TypeMismatch(ConditionEvaluationError):
    """Raised when an operator is applied to values of the wrong shape."""
    pass


class ConditionEvaluator:
    """
    Evaluates visibility conditions against an answer map.

    Args:
        registry: FunctionRegistry for FunctionCall comparison values
                  (a fresh registry with built-ins when omitted)
        today: Reference date handed to registry functions
               (date.today() at evaluation time when omitted)
    """

    def __init__(self, registry: Optional[FunctionRegistry] = None, today: Optional[date] = None):
        self.registry = registry if registry is not None else FunctionRegistry()
        self._today = today

    @property
    def today(self) -> date:
        return self._today if self._today is not None else date.today()

    def resolve_value(
        self,
        condition: Condition,
        answers: Mapping[str, Any],
        current_question_id: Optional[str] = None,
    ) -> Any:
        """Comparison value of a condition, with FunctionCalls executed."""
        value = condition.value
        if isinstance(value, FunctionCall):
            context = EvaluationContext(
                answers=answers,
                current_question_id=current_question_id,
                today=self.today,
            )
            return self.registry.execute(value.name, value.args, context)
        return value

    def evaluate(
        self,
        condition: Condition,
        answers: Mapping[str, Any],
        current_question_id: Optional[str] = None,
    ) -> bool:
        """
        Apply a condition to the answers.

        Returns:
            True if the condition is satisfied

        Raises:
            TypeMismatch: ordering/contains operator on incompatible values
            FunctionRegistryError: FunctionCall value failed in the registry
        """
        answer = answers.get(condition.question_id)
        if answer is None:
            return False

        expected = self.resolve_value(condition, answers, current_question_id)
        operator = condition.operator

        if operator == ConditionOperator.EQUALS:
            return strict_equals(answer, expected)

        if operator == ConditionOperator.NOT_EQUALS:
            return not strict_equals(answer, expected)

        if operator.is_ordering:
            left = to_number(answer)
            right = to_number(expected)
            if left is None or right is None:
                raise TypeMismatch(
                    f"{operator.value} needs numeric operands, got {answer!r} and {expected!r}",
                    condition,
                )
            if operator == ConditionOperator.GREATER_THAN:
                return left > right
            if operator == ConditionOperator.LESS_THAN:
                return left < right
            if operator == ConditionOperator.GREATER_THAN_OR_EQUAL:
                return left >= right
            return left <= right

        if operator == ConditionOperator.CONTAINS:
            if isinstance(answer, (list, tuple)):
                return any(strict_equals(item, expected) for item in answer)
            if isinstance(answer, str) and isinstance(expected, str):
                return expected in answer
            raise TypeMismatch(
                f"contains needs a list or string answer, got {answer!r} and {expected!r}",
                condition,
            )

        raise ConditionEvaluationError(f"Unknown condition operator: {operator!r}", condition)

    def evaluate_group(
        self,
        group: ConditionGroup,
        answers: Mapping[str, Any],
        current_question_id: Optional[str] = None,
    ) -> bool:
        """
        Apply a Condition or AllOf group. Members are AND-ed; each one
        follows the closed-world rule on its own.

        Raises:
            Same as evaluate()
        """
        return all(
            self.evaluate(condition, answers, current_question_id)
            for condition in group_conditions(group)
        )

    def _bad_reference(self, question: Question, group: ConditionGroup,
                       questionnaire: Optional[Questionnaire]) -> Optional[str]:
        # First member reference that is not strictly earlier in declared order
        if questionnaire is None:
            return None
        own_index = questionnaire.index_of(question.id)
        for condition in group_conditions(group):
            ref_index = questionnaire.index_of(condition.question_id)
            if ref_index < 0 or (own_index >= 0 and ref_index >= own_index):
                return condition.question_id
        return None

    def _check(self, question: Question, slot: str, answers: Mapping[str, Any],
               questionnaire: Optional[Questionnaire]) -> Optional[bool]:
        # None when the group is malformed or fails to evaluate
        group = getattr(question, slot)
        ref = self._bad_reference(question, group, questionnaire)
        if ref is not None:
            logger.warning(
                "Question %r %s references %r which is not an earlier question",
                question.id,
                slot,
                ref,
            )
            return None
        try:
            return self.evaluate_group(group, answers, current_question_id=question.id)
        except (ConditionEvaluationError, FunctionRegistryError) as e:
            logger.warning("Could not evaluate %s of %r: %s", slot, question.id, e)
            return None

    def is_visible(
        self,
        question: Question,
        answers: Mapping[str, Any],
        questionnaire: Optional[Questionnaire] = None,
    ) -> bool:
        """
        Decide whether a question should be shown.

        visible_if must hold and hide_if must not. When a questionnaire is
        given, every referenced question must come strictly earlier in
        declared order; anything else is a configuration error and hides
        the question.
        """
        if question.visible_if is not None:
            if not self._check(question, "visible_if", answers, questionnaire):
                return False
        if question.hide_if is not None:
            hidden = self._check(question, "hide_if", answers, questionnaire)
            if hidden is None or hidden:
                return False
        return True

    def is_required(
        self,
        question: Question,
        answers: Mapping[str, Any],
        questionnaire: Optional[Questionnaire] = None,
    ) -> bool:
        """
        The static required flag, or required_if holding on the answers.

        A malformed required_if leaves the question optional.
        """
        if question.required:
            return True
        if question.required_if is None:
            return False
        return bool(self._check(question, "required_if", answers, questionnaire))


__all__ = [
    "ConditionEvaluationError",
    "ConditionEvaluator",
    "TypeMismatch",
]
