"""
Questionnaire flow state machine.

A FlowSession owns one answer map and one flow position for the lifetime
of a respondent's session:

    NOT_STARTED --start()--> IN_PROGRESS --(last answer)--> COMPLETED
                                  |
                                  +--abandon()--> ABANDONED

Per step the session:
    1. validates the answer with the per-type validator (returned as data),
       treating the question as required when its required_if holds
    2. records it and pushes the current index onto history
    3. asks the navigation manager for the next visible question
    4. recomputes progress against the current visible path
    5. optionally re-checks cross-question rules

Answers stay recorded when their question becomes hidden, so they come
back if it is shown again, but only answers on the visible path count
towards visibility, progress, completion, rules and snapshots.

Protocol violations (submitting before start, after completion, ...)
raise FlowError. Validation failures and "no previous question" are
normal outcomes returned in a StepResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from .conditions import ConditionEvaluator
from .context import SessionContext
from .cross_validation import CrossQuestionValidator, CrossValidationRule
from .model import Question, Questionnaire
from .navigation import FlowPosition, NavigationManager, NavigationSignal
from .progress import ProgressInfo, calculate_progress, is_complete
from .results import ValidationResult, error
from .validators import validate_answer
from .values import has_value

AnswerValidator = Callable[[Question, Any], ValidationResult]


class FlowErrorCode(Enum):
    NOT_IN_PROGRESS = "NOT_IN_PROGRESS"
    ALREADY_STARTED = "ALREADY_STARTED"
    SESSION_CLOSED = "SESSION_CLOSED"
    QUESTION_NOT_FOUND = "QUESTION_NOT_FOUND"
    INVALID_NAVIGATION = "INVALID_NAVIGATION"


class FlowError(Exception):
    """Raised when flow operations are called out of sequence."""

    def __init__(self, message: str, code: FlowErrorCode, context: Any = None):
        super().__init__(message)
        self.code = code
        self.context = context


class FlowStatus(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowStatus.COMPLETED, FlowStatus.ABANDONED)


class StepStatus(Enum):
    QUESTION = "question"
    COMPLETED = "completed"
    INVALID = "invalid"
    NO_PREVIOUS = "no_previous"
    ABANDONED = "abandoned"


@dataclass
class StepResult:
    """
    Outcome of one flow operation.

    Properties:
        status: StepStatus
        question: Question now current (QUESTION, INVALID, NO_PREVIOUS)
        validation: Per-question result (INVALID, or warnings on success)
        cross_validation: Cross-question result, when rules were re-checked
        progress: ProgressInfo after the operation
    """

    status: StepStatus
    progress: ProgressInfo
    question: Optional[Question] = None
    validation: Optional[ValidationResult] = None
    cross_validation: Optional[ValidationResult] = None


@dataclass
class SessionSnapshot:
    """What the storage collaborator receives when a session ends."""

    questionnaire_id: str
    questionnaire_version: str
    status: FlowStatus
    answers: Dict[str, Any]
    history: List[str]
    started_at: Optional[datetime]
    updated_at: Optional[datetime]
    completed_at: Optional[datetime] = None
    skipped: List[str] = field(default_factory=list)


class FlowSession:
    """
    Drives one respondent through one questionnaire.

    Args:
        questionnaire: Questionnaire definition (read-only)
        rules: Cross-validation rules for this questionnaire
        context: SessionContext (settings, registry, logger, clock)
        answer_validator: Per-question validator; defaults to
                          validators.validate_answer bound to the context
    """

    def __init__(
        self,
        questionnaire: Questionnaire,
        rules: Sequence[CrossValidationRule] = (),
        context: Optional[SessionContext] = None,
        answer_validator: Optional[AnswerValidator] = None,
    ):
        self.questionnaire = questionnaire
        self.rules = tuple(rules)
        self.context = context if context is not None else SessionContext()
        self.logger = self.context.logger
        self.evaluator = ConditionEvaluator(self.context.registry, today=self.context.today())
        self.navigation = NavigationManager(self.evaluator)
        self.cross_validator = CrossQuestionValidator()
        self._answer_validator = answer_validator or self._default_validator

        self.status = FlowStatus.NOT_STARTED
        self.position = FlowPosition()
        self._answers: Dict[str, Any] = {}
        self._skipped: Set[str] = set()
        self.started_at: Optional[datetime] = None
        self.updated_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None

    # =========================================================================
    # QUERIES
    # =========================================================================

    @property
    def answers(self) -> Dict[str, Any]:
        """Copy of every recorded answer, including those of now-hidden questions."""
        return dict(self._answers)

    def visible_answers(self) -> Dict[str, Any]:
        """Answers to questions on the current visible path."""
        return self.navigation.live_answers(self.questionnaire, self._answers)

    def is_required(self, question: Question) -> bool:
        """Static required flag, or required_if holding on the visible answers."""
        return self.evaluator.is_required(question, self.visible_answers(), self.questionnaire)

    @property
    def current_question(self) -> Optional[Question]:
        if self.status != FlowStatus.IN_PROGRESS:
            return None
        index = self.position.current_index
        if 0 <= index < len(self.questionnaire.questions):
            return self.questionnaire.questions[index]
        return None

    def visible_questions(self) -> List[Question]:
        """Current visible path, recomputed from the answer map."""
        questions = self.questionnaire.questions
        return [questions[i] for i in self.navigation.visible_path(self.questionnaire, self._answers)]

    def _path_position(self, path: List[int]) -> int:
        # Position of the current question within the visible path; the
        # path length once the end has been reached
        if self.status == FlowStatus.COMPLETED:
            return len(path)
        if self.position.current_index in path:
            return path.index(self.position.current_index)
        return sum(1 for i in path if i < self.position.current_index)

    def progress(self) -> ProgressInfo:
        path = self.navigation.visible_path(self.questionnaire, self._answers)
        live = self.visible_answers()
        answered = sum(1 for i in path if has_value(live.get(self.questionnaire.questions[i].id)))
        return calculate_progress(
            len(path),
            self._path_position(path),
            answered,
            self.status == FlowStatus.COMPLETED,
        )

    def all_required_answered(self) -> bool:
        """Every required question on the current visible path has an answer."""
        live = self.visible_answers()
        return all(
            has_value(live.get(q.id))
            for q in self.visible_questions()
            if self.evaluator.is_required(q, live, self.questionnaire)
        )

    def is_complete(self) -> bool:
        path = self.navigation.visible_path(self.questionnaire, self._answers)
        return is_complete(self._path_position(path), len(path), self.all_required_answered())

    def validate_cross_questions(
        self, rules: Optional[Sequence[CrossValidationRule]] = None
    ) -> ValidationResult:
        """Run cross-question rules (the session's own by default) on the visible answers."""
        return self.cross_validator.validate(
            self.visible_answers(),
            self.questionnaire.questions,
            self.rules if rules is None else rules,
        )

    def snapshot(self) -> SessionSnapshot:
        live = self.visible_answers()
        visible_ids = {q.id for q in self.visible_questions()}
        questions = self.questionnaire.questions
        return SessionSnapshot(
            questionnaire_id=self.questionnaire.id,
            questionnaire_version=self.questionnaire.version,
            status=self.status,
            answers=live,
            history=[questions[i].id for i in self.position.history if 0 <= i < len(questions)],
            started_at=self.started_at,
            updated_at=self.updated_at,
            completed_at=self.completed_at,
            skipped=sorted(self._skipped & visible_ids),
        )

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def start(self) -> StepResult:
        if self.status != FlowStatus.NOT_STARTED:
            raise FlowError(
                "Session has already been started",
                FlowErrorCode.ALREADY_STARTED,
                {"status": self.status.value},
            )

        self._answers = {}
        self._skipped = set()
        self.position = FlowPosition()
        self.status = FlowStatus.IN_PROGRESS
        self.started_at = self._touch()
        self.logger.info(
            "Started questionnaire %s v%s (%d questions)",
            self.questionnaire.id,
            self.questionnaire.version,
            len(self.questionnaire.questions),
        )
        return self._advance()

    def submit_answer(self, question_id: str, value: Any) -> StepResult:
        question = self._require_current(question_id)

        checked = question
        if not question.required and self.is_required(question):
            checked = replace(question, required=True)
        validation = self._answer_validator(checked, value)
        if not validation.is_valid:
            self.logger.debug("Rejected answer for %r: %s", question.id, validation.error_codes)
            return StepResult(
                status=StepStatus.INVALID,
                progress=self.progress(),
                question=question,
                validation=validation,
            )

        self._answers[question.id] = value
        self._skipped.discard(question.id)
        self.logger.debug("Recorded answer for %r", question.id)
        return self._advance(validation=validation, record_history=True)

    def skip(self) -> StepResult:
        question = self._require_current()

        reason = None
        if self.is_required(question):
            reason = error("REQUIRED_FIELD", "This field is required", question.id)
        elif not self.questionnaire.config.allow_skip:
            reason = error("SKIP_NOT_ALLOWED", "Skipping questions is not allowed", question.id)
        if reason is not None:
            return StepResult(
                status=StepStatus.INVALID,
                progress=self.progress(),
                question=question,
                validation=ValidationResult.failure([reason]),
            )

        self._answers.pop(question.id, None)
        self._skipped.add(question.id)
        self.logger.debug("Skipped %r", question.id)
        return self._advance(record_history=True)

    def back(self) -> StepResult:
        self._require_in_progress()

        if not self.questionnaire.config.allow_back:
            return self._no_previous()

        target = self.navigation.previous(self.position.history)
        if target is NavigationSignal.NO_PREVIOUS:
            return self._no_previous()

        self.position.advance_to(target)
        self._touch()
        question = self.questionnaire.questions[target]
        self.logger.debug("Moved back to %r", question.id)
        return StepResult(status=StepStatus.QUESTION, progress=self.progress(), question=question)

    def jump_to(self, question_id: str) -> StepResult:
        """
        Return to an already visited question, or stay on the current one.

        History after the target is discarded, as if back() had been
        called until the target was reached. Forward jumps are refused.

        Raises:
            FlowError: QUESTION_NOT_FOUND for an unknown id;
                       INVALID_NAVIGATION for a hidden or unvisited target
        """
        self._require_in_progress()
        target = self.questionnaire.index_of(question_id)
        if target < 0:
            raise FlowError(
                f"Question not found: {question_id}",
                FlowErrorCode.QUESTION_NOT_FOUND,
                {"question_id": question_id},
            )
        question = self.questionnaire.questions[target]
        if target == self.position.current_index:
            return StepResult(status=StepStatus.QUESTION, progress=self.progress(), question=question)

        if not self.questionnaire.config.allow_back:
            return self._no_previous()

        visible = self.navigation.visible_path(self.questionnaire, self._answers)
        if target not in visible or target not in self.position.history:
            raise FlowError(
                f"Question {question_id!r} is not a visited, visible question",
                FlowErrorCode.INVALID_NAVIGATION,
                {"question_id": question_id},
            )

        del self.position.history[self.position.history.index(target):]
        self.position.advance_to(target)
        self._touch()
        self.logger.debug("Jumped back to %r", question.id)
        return StepResult(status=StepStatus.QUESTION, progress=self.progress(), question=question)

    def abandon(self) -> StepResult:
        if self.status.is_terminal:
            raise FlowError(
                f"Session is already {self.status.value}",
                FlowErrorCode.SESSION_CLOSED,
                {"status": self.status.value},
            )
        self.status = FlowStatus.ABANDONED
        self._touch()
        self.logger.info("Abandoned questionnaire %s", self.questionnaire.id)
        return StepResult(status=StepStatus.ABANDONED, progress=self.progress())

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _default_validator(self, question: Question, value: Any) -> ValidationResult:
        return validate_answer(question, value, today=self.context.today(), settings=self.context.settings)

    def _touch(self) -> datetime:
        self.updated_at = self.context.now()
        return self.updated_at

    def _require_in_progress(self) -> None:
        if self.status != FlowStatus.IN_PROGRESS:
            raise FlowError(
                f"Session is not in progress (status: {self.status.value})",
                FlowErrorCode.NOT_IN_PROGRESS,
                {"status": self.status.value},
            )

    def _require_current(self, question_id: Optional[str] = None) -> Question:
        self._require_in_progress()
        current = self.current_question
        if current is None:
            raise FlowError("No current question", FlowErrorCode.INVALID_NAVIGATION)
        if question_id is None or question_id == current.id:
            return current
        if self.questionnaire.get_question(question_id) is None:
            raise FlowError(
                f"Question not found: {question_id}",
                FlowErrorCode.QUESTION_NOT_FOUND,
                {"question_id": question_id},
            )
        raise FlowError(
            f"Question {question_id!r} is not the current question {current.id!r}",
            FlowErrorCode.INVALID_NAVIGATION,
            {"question_id": question_id, "current_question_id": current.id},
        )

    def _no_previous(self) -> StepResult:
        return StepResult(
            status=StepStatus.NO_PREVIOUS,
            progress=self.progress(),
            question=self.current_question,
        )

    def _advance(
        self,
        validation: Optional[ValidationResult] = None,
        record_history: bool = False,
    ) -> StepResult:
        if record_history:
            self.position.push_history()

        cross = None
        if self.rules and self.context.settings.cross_validate_on_answer and record_history:
            cross = self.validate_cross_questions()
            if not cross.is_valid:
                self.logger.info("Cross-question rules violated: %s", cross.error_codes)

        target = self.navigation.next(self.questionnaire, self._answers, self.position.current_index)
        self._touch()

        if target is NavigationSignal.DONE:
            self.position.advance_to(len(self.questionnaire.questions))
            self.status = FlowStatus.COMPLETED
            self.completed_at = self.updated_at
            self.logger.info(
                "Completed questionnaire %s with %d answers",
                self.questionnaire.id,
                len(self.visible_answers()),
            )
            return StepResult(
                status=StepStatus.COMPLETED,
                progress=self.progress(),
                validation=validation,
                cross_validation=cross,
            )

        self.position.advance_to(target)
        return StepResult(
            status=StepStatus.QUESTION,
            progress=self.progress(),
            question=self.questionnaire.questions[target],
            validation=validation,
            cross_validation=cross,
        )


__all__ = [
    "AnswerValidator",
    "FlowError",
    "FlowErrorCode",
    "FlowSession",
    "FlowStatus",
    "SessionSnapshot",
    "StepResult",
    "StepStatus",
]
