"""
Function registry for computed visibility conditions.

A registry is a name-keyed table of callables. Each callable receives the
literal argument list of a FunctionCall plus an EvaluationContext exposing
the accumulated answers:

    registry.execute("sum", ["q1", "q2"], context)

Registries are constructed per session (see questionflow.context); there
is no process-wide default instance.

Built-in functions:
    count(questionId, value)   occurrences of value in a list answer
    sum(q, ...)                sum of numeric answers (0 when none)
    avg(q, ...)                mean of numeric answers (0 when none)
    min(q, ...)                smallest numeric answer (None when none)
    max(q, ...)                largest numeric answer (None when none)
    daysAgo(q)                 whole days between a date answer and today
    length(q)                  length of a string or list answer
    answeredCount(q, ...)      number of non-empty answers
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .values import is_number, strict_equals

logger = logging.getLogger(__name__)


class FunctionRegistryError(Exception):
    """Base class for registry failures."""
    pass


class UnknownFunction(FunctionRegistryError):
    """Raised when no function is registered under the requested name."""

    def __init__(self, name: str):
        super().__init__(f"Unknown function: {name}")
        self.name = name


class InvalidArguments(FunctionRegistryError):
    """Raised when a function is called with too few arguments."""
    pass


@dataclass
class EvaluationContext:
    """
    What a registry function may look at.

    Properties:
        answers: The full accumulated answer map (read-only by convention)
        current_question_id: Id of the question being evaluated (optional)
        today: Reference date for date arithmetic
    """

    answers: Mapping[str, Any] = field(default_factory=dict)
    current_question_id: Optional[str] = None
    today: date = field(default_factory=date.today)

    def answer(self, question_id: Any) -> Any:
        return self.answers.get(question_id)


ConditionalFunction = Callable[[Sequence[Any], EvaluationContext], Any]


class FunctionRegistry:
    """
    Name-keyed table of conditional functions.

    register() overwrites silently: the last registration under a name wins.
    """

    def __init__(self, include_builtins: bool = True):
        self._functions: Dict[str, ConditionalFunction] = {}
        if include_builtins:
            for name, func in BUILTIN_FUNCTIONS.items():
                self.register(name, func)

    @classmethod
    def with_builtins(cls) -> FunctionRegistry:
        return cls(include_builtins=True)

    def register(self, name: str, function: ConditionalFunction) -> None:
        if name in self._functions:
            logger.debug("Overwriting conditional function %r", name)
        self._functions[name] = function

    def has(self, name: str) -> bool:
        return name in self._functions

    def names(self) -> List[str]:
        return sorted(self._functions)

    def execute(self, name: str, args: Sequence[Any], context: EvaluationContext) -> Any:
        """
        Invoke a registered function.

        Raises:
            UnknownFunction: no entry under `name`
            InvalidArguments: raised by the function on bad arity
        """
        func = self._functions.get(name)
        if func is None:
            raise UnknownFunction(name)
        return func(list(args), context)


# =========================================================================
# BUILT-IN FUNCTIONS
# =========================================================================


def _require_args(name: str, args: Sequence[Any], minimum: int, usage: str) -> None:
    if len(args) < minimum:
        raise InvalidArguments(f"{name}() requires {usage}")


def _numeric_answers(args: Sequence[Any], context: EvaluationContext) -> List[float]:
    return [v for v in (context.answer(q) for q in args) if is_number(v)]


def _count(args: Sequence[Any], context: EvaluationContext) -> int:
    _require_args("count", args, 2, "2 arguments: questionId and value")
    question_id, value = args[0], args[1]
    answer = context.answer(question_id)
    if not isinstance(answer, (list, tuple)):
        return 0
    return sum(1 for item in answer if strict_equals(item, value))


def _sum(args: Sequence[Any], context: EvaluationContext) -> float:
    _require_args("sum", args, 1, "at least 1 argument")
    return sum(_numeric_answers(args, context))


def _avg(args: Sequence[Any], context: EvaluationContext) -> float:
    _require_args("avg", args, 1, "at least 1 argument")
    values = _numeric_answers(args, context)
    if not values:
        return 0
    return sum(values) / len(values)


def _min(args: Sequence[Any], context: EvaluationContext) -> Optional[float]:
    _require_args("min", args, 1, "at least 1 argument")
    values = _numeric_answers(args, context)
    return min(values) if values else None


def _max(args: Sequence[Any], context: EvaluationContext) -> Optional[float]:
    _require_args("max", args, 1, "at least 1 argument")
    values = _numeric_answers(args, context)
    return max(values) if values else None


def parse_date(value: Any) -> Optional[date]:
    """Best-effort conversion of an answer to a date; None if impossible."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def _days_ago(args: Sequence[Any], context: EvaluationContext) -> Optional[int]:
    _require_args("daysAgo", args, 1, "1 argument: questionId")
    answered = parse_date(context.answer(args[0]))
    if answered is None:
        return None
    return abs((context.today - answered).days)


def _length(args: Sequence[Any], context: EvaluationContext) -> int:
    _require_args("length", args, 1, "1 argument: questionId")
    answer = context.answer(args[0])
    if isinstance(answer, (str, list, tuple)):
        return len(answer)
    return 0


def _answered_count(args: Sequence[Any], context: EvaluationContext) -> int:
    _require_args("answeredCount", args, 1, "at least 1 argument")
    return sum(1 for q in args if context.answer(q) not in (None, ""))


BUILTIN_FUNCTIONS: Dict[str, ConditionalFunction] = {
    "count": _count,
    "sum": _sum,
    "avg": _avg,
    "daysAgo": _days_ago,
    "length": _length,
    "answeredCount": _answered_count,
    "min": _min,
    "max": _max,
}


__all__ = [
    "BUILTIN_FUNCTIONS",
    "ConditionalFunction",
    "EvaluationContext",
    "FunctionRegistry",
    "FunctionRegistryError",
    "InvalidArguments",
    "UnknownFunction",
    "parse_date",
]
