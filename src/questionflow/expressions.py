"""
Condition expressions for questionflow.

Visibility conditions are represented as small immutable objects,
never as strings of code.

A condition always has the same shape:

    <answer of an earlier question> <operator> <comparison value>

The comparison value is either a plain literal or a FunctionCall that is
resolved through the function registry at evaluation time.

Several conditions can be grouped with AllOf; a group holds only when
every member holds.

ARCHITECTURAL RULE:
    These objects hold structure only.
    Evaluation lives in questionflow.conditions.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Tuple, Union


class Expression(ABC):
    """
    Base class for condition structures.

    Exists for type-safety across the expression family.
    It carries no evaluation logic.
    """
    pass


class ConditionOperator(Enum):
    """
    Comparison operators supported in visibility conditions.

    Values are the stable wire names used in questionnaire documents.
    """

    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    GREATER_THAN_OR_EQUAL = "greaterThanOrEqual"
    LESS_THAN_OR_EQUAL = "lessThanOrEqual"
    CONTAINS = "contains"

    @property
    def is_ordering(self) -> bool:
        """True for operators that need both sides to be numbers."""
        return self in ORDERING_OPERATORS


ORDERING_OPERATORS = frozenset({
    ConditionOperator.GREATER_THAN,
    ConditionOperator.LESS_THAN,
    ConditionOperator.GREATER_THAN_OR_EQUAL,
    ConditionOperator.LESS_THAN_OR_EQUAL,
})


@dataclass(frozen=True)
class FunctionCall(Expression):
    """
    A named function invocation used as a comparison value.

    Example:
        sum("q_hours_mon", "q_hours_tue")

    Becomes:
        FunctionCall(name="sum", args=("q_hours_mon", "q_hours_tue"))

    Properties:
        name: Registry name of the function (exact match)
        args: Literal argument list, usually question ids

    IMPORTANT:
        The call is not validated against a registry here.
        Unknown names surface when the condition is evaluated.
    """

    name: str
    args: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Accept lists from callers but store a hashable tuple
        if not isinstance(self.args, tuple):
            object.__setattr__(self, "args", tuple(self.args))


@dataclass(frozen=True)
class Condition(Expression):
    """
    A visibility condition attached to a question.

    Example:
        Show "q_pet_name" only if "q_has_pet" equals "yes"

    Becomes:
        Condition(
            question_id="q_has_pet",
            operator=ConditionOperator.EQUALS,
            value="yes",
        )

    Properties:
        question_id:
            Id of the referenced question. Must occur strictly earlier
            in the questionnaire; forward references are a configuration
            error and hide the dependent question.

        operator:
            ConditionOperator

        value:
            Literal comparison value, or a FunctionCall
    """

    question_id: str
    operator: ConditionOperator
    value: Any = None

    @property
    def uses_function(self) -> bool:
        return isinstance(self.value, FunctionCall)


@dataclass(frozen=True)
class AllOf(Expression):
    """
    Conditions AND-ed together.

    Example:
        Show "q_dog_walks" if "q_has_pet" equals "yes" AND
        "q_pet_types" contains "dog"

    Becomes:
        AllOf((
            Condition("q_has_pet", ConditionOperator.EQUALS, "yes"),
            Condition("q_pet_types", ConditionOperator.CONTAINS, "dog"),
        ))

    Properties:
        conditions: Member conditions, each evaluated on its own terms
                    (an unanswered reference makes that member false)

    IMPORTANT:
        An empty group holds vacuously.
    """

    conditions: Tuple[Condition, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.conditions, tuple):
            object.__setattr__(self, "conditions", tuple(self.conditions))


ConditionGroup = Union[Condition, AllOf]


def group_conditions(group: ConditionGroup | None) -> Tuple[Condition, ...]:
    """Member conditions of a group; a bare Condition is a group of one."""
    if group is None:
        return ()
    if isinstance(group, AllOf):
        return group.conditions
    return (group,)
