"""
Navigation through the visible path of a questionnaire.

The navigation manager never caches the visible path: any edit to an
earlier answer can change it, so every forward step re-asks the condition
evaluator. Only history already traversed is frozen; going back pops that
history without re-running visibility.

Visibility is decided in one forward walk over declared order. A question
is judged against the answers of the earlier questions that are visible
themselves, so an answer left behind on a question that has since become
hidden never exposes anything further down the chain.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .conditions import ConditionEvaluator
from .model import Questionnaire

logger = logging.getLogger(__name__)


class NavigationSignal(Enum):
    """Normal, non-error navigation outcomes."""

    DONE = "done"
    NO_PREVIOUS = "no_previous"


NavigationTarget = Union[int, NavigationSignal]


@dataclass
class FlowPosition:
    """
    Current index into the FULL question list plus visited history.

    current_index starts at -1 (before the first question). history only
    ever holds indices that were visible when they were visited.
    """

    current_index: int = -1
    history: List[int] = field(default_factory=list)

    def push_history(self) -> None:
        self.history.append(self.current_index)

    def advance_to(self, index: int) -> None:
        self.current_index = index

    def copy(self) -> FlowPosition:
        return FlowPosition(current_index=self.current_index, history=list(self.history))


class NavigationManager:
    """Computes next/previous positions by consulting the evaluator."""

    def __init__(self, evaluator: Optional[ConditionEvaluator] = None):
        self.evaluator = evaluator if evaluator is not None else ConditionEvaluator()

    def _resolve(
        self,
        questionnaire: Questionnaire,
        answers: Mapping[str, Any],
    ) -> Tuple[List[bool], Dict[str, Any]]:
        # Visibility flag per question, plus the answers of visible questions
        live: Dict[str, Any] = {}
        flags: List[bool] = []
        for question in questionnaire.questions:
            visible = self.evaluator.is_visible(question, live, questionnaire)
            flags.append(visible)
            if visible and question.id in answers:
                live[question.id] = answers[question.id]
        return flags, live

    def next(
        self,
        questionnaire: Questionnaire,
        answers: Mapping[str, Any],
        current_index: int,
    ) -> NavigationTarget:
        """
        First visible index after current_index, or NavigationSignal.DONE.
        """
        flags, _ = self._resolve(questionnaire, answers)
        for index in range(max(current_index + 1, 0), len(flags)):
            if flags[index]:
                return index
            logger.debug("Skipping hidden question %r", questionnaire.questions[index].id)
        return NavigationSignal.DONE

    def previous(self, history: List[int]) -> NavigationTarget:
        """
        Pop the most recently visited index from `history` (in place).

        Returns NavigationSignal.NO_PREVIOUS when history is empty.
        """
        if not history:
            return NavigationSignal.NO_PREVIOUS
        return history.pop()

    def visible_path(self, questionnaire: Questionnaire, answers: Mapping[str, Any]) -> List[int]:
        """Indices of every currently visible question, in declared order."""
        flags, _ = self._resolve(questionnaire, answers)
        return [index for index, visible in enumerate(flags) if visible]

    def live_answers(self, questionnaire: Questionnaire, answers: Mapping[str, Any]) -> Dict[str, Any]:
        """The answers that belong to currently visible questions."""
        _, live = self._resolve(questionnaire, answers)
        return live


__all__ = ["FlowPosition", "NavigationManager", "NavigationSignal", "NavigationTarget"]
