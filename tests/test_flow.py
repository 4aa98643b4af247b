"""
Tests for the questionnaire flow state machine.

These tests verify:
    - Lifecycle transitions and protocol errors
    - Branching, skipping and back-navigation
    - Progress recomputed against the visible path
    - Cross-question rules re-checked after each answer
    - Snapshots handed to storage
    - Answers on hidden questions kept but not counted
    - Conditionally required questions and jumping back
"""

import logging
from datetime import datetime, timezone

import pytest
from questionflow.config import FlowSettings
from questionflow.context import SessionContext
from questionflow.cross_validation import CONSISTENCY_VIOLATION, ConsistencyRule, DependencyRule
from questionflow.expressions import Condition, ConditionOperator, FunctionCall
from questionflow.flow import FlowError, FlowErrorCode, FlowSession, FlowStatus, StepStatus
from questionflow.functions import FunctionRegistry
from questionflow.model import (
    Option,
    Question,
    Questionnaire,
    QuestionnaireConfig,
    QuestionType,
    ValidationRules,
)
from questionflow.navigation import FlowPosition
from questionflow.results import ValidationResult, error

MOMENT = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def pet_questionnaire(allow_back=True, allow_skip=True):
    """q1 yes/no; q2 only when q1 == "yes"; q3 always."""
    return Questionnaire(
        id="pets",
        version="2.1.0",
        questions=[
            Question(
                id="q1",
                type=QuestionType.SINGLE_CHOICE,
                text="Do you have a pet?",
                required=True,
                options=[Option("yes"), Option("no")],
            ),
            Question(
                id="q2",
                type=QuestionType.TEXT,
                text="What is its name?",
                visible_if=Condition("q1", ConditionOperator.EQUALS, "yes"),
            ),
            Question(
                id="q3",
                type=QuestionType.NUMBER,
                text="How many people live with you?",
                required=True,
                validation=ValidationRules(min=0, integer=True),
            ),
        ],
        config=QuestionnaireConfig(allow_back=allow_back, allow_skip=allow_skip),
    )


def make_session(questionnaire=None, rules=(), settings=None, **kwargs):
    context = SessionContext.fixed(MOMENT, settings=settings)
    return FlowSession(questionnaire if questionnaire is not None else pet_questionnaire(), rules=rules, context=context, **kwargs)


class TestLifecycle:
    """Test status transitions."""

    def test_initial_state(self):
        session = make_session()
        assert session.status is FlowStatus.NOT_STARTED
        assert session.current_question is None
        assert session.position == FlowPosition(current_index=-1, history=[])

    def test_start_shows_first_question(self):
        session = make_session()
        step = session.start()
        assert step.status is StepStatus.QUESTION
        assert step.question.id == "q1"
        assert session.status is FlowStatus.IN_PROGRESS
        assert session.started_at == MOMENT

    def test_start_twice(self):
        session = make_session()
        session.start()
        with pytest.raises(FlowError) as exc_info:
            session.start()
        assert exc_info.value.code is FlowErrorCode.ALREADY_STARTED

    def test_submit_before_start(self):
        session = make_session()
        with pytest.raises(FlowError) as exc_info:
            session.submit_answer("q1", "yes")
        assert exc_info.value.code is FlowErrorCode.NOT_IN_PROGRESS
        assert exc_info.value.context == {"status": "not_started"}

    def test_complete(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "no")
        step = session.submit_answer("q3", 2)
        assert step.status is StepStatus.COMPLETED
        assert step.question is None
        assert session.status is FlowStatus.COMPLETED
        assert session.completed_at == MOMENT
        assert session.current_question is None
        assert session.is_complete()
        assert step.progress.is_completed
        assert step.progress.percent_complete == 100

    def test_submit_after_completion(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "no")
        session.submit_answer("q3", 2)
        with pytest.raises(FlowError) as exc_info:
            session.submit_answer("q3", 3)
        assert exc_info.value.code is FlowErrorCode.NOT_IN_PROGRESS

    def test_empty_questionnaire_completes_on_start(self):
        session = make_session(Questionnaire(id="empty"))
        step = session.start()
        assert step.status is StepStatus.COMPLETED
        assert step.progress.percent_complete == 0
        assert session.is_complete()

    def test_abandon(self):
        session = make_session()
        session.start()
        step = session.abandon()
        assert step.status is StepStatus.ABANDONED
        assert session.status is FlowStatus.ABANDONED
        with pytest.raises(FlowError) as exc_info:
            session.back()
        assert exc_info.value.code is FlowErrorCode.NOT_IN_PROGRESS

    def test_abandon_twice(self):
        session = make_session()
        session.start()
        session.abandon()
        with pytest.raises(FlowError) as exc_info:
            session.abandon()
        assert exc_info.value.code is FlowErrorCode.SESSION_CLOSED

    def test_abandon_before_start(self):
        session = make_session()
        assert session.abandon().status is StepStatus.ABANDONED


class TestSubmitAnswer:
    """Test answering the current question."""

    def test_invalid_answer_not_recorded(self):
        session = make_session()
        session.start()
        step = session.submit_answer("q1", "maybe")
        assert step.status is StepStatus.INVALID
        assert step.question.id == "q1"
        assert step.validation.error_codes == ["INVALID_OPTION"]
        assert session.answers == {}
        assert session.position.current_index == 0

    def test_required_answer_missing(self):
        session = make_session()
        session.start()
        step = session.submit_answer("q1", "")
        assert step.validation.error_codes == ["REQUIRED_FIELD"]

    def test_other_question_rejected(self):
        session = make_session()
        session.start()
        with pytest.raises(FlowError) as exc_info:
            session.submit_answer("q3", 2)
        assert exc_info.value.code is FlowErrorCode.INVALID_NAVIGATION

    def test_unknown_question_rejected(self):
        session = make_session()
        session.start()
        with pytest.raises(FlowError) as exc_info:
            session.submit_answer("ghost", 2)
        assert exc_info.value.code is FlowErrorCode.QUESTION_NOT_FOUND

    def test_answers_returns_copy(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "yes")
        session.answers["q1"] = "tampered"
        assert session.answers == {"q1": "yes"}

    def test_custom_answer_validator(self):
        def reject_everything(question, value):
            return ValidationResult.failure([error("NOPE", "Rejected", question.id)])

        session = make_session(answer_validator=reject_everything)
        session.start()
        step = session.submit_answer("q1", "yes")
        assert step.status is StepStatus.INVALID
        assert step.validation.error_codes == ["NOPE"]

    def test_warnings_returned_on_success(self):
        qn = Questionnaire(
            id="warn",
            questions=[Question(id="t", type=QuestionType.TEXT, text="T", validation=ValidationRules(max_length=10))],
        )
        session = make_session(qn)
        session.start()
        step = session.submit_answer("t", "abcdefghij")
        assert step.status is StepStatus.COMPLETED
        assert [w.code for w in step.validation.warnings] == ["APPROACHING_LIMIT"]

    def test_today_bound_uses_session_clock(self):
        qn = Questionnaire(
            id="dates",
            questions=[Question(id="d", type=QuestionType.DATE, text="D", validation=ValidationRules(max_date="today"))],
        )
        session = make_session(qn)
        session.start()
        assert session.submit_answer("d", "2024-06-16").validation.error_codes == ["DATE_TOO_LATE"]
        assert session.submit_answer("d", "2024-06-15").status is StepStatus.COMPLETED


class TestBranching:
    """Visibility is recomputed from the answers on every step."""

    def test_hidden_question_skipped(self):
        session = make_session()
        session.start()
        step = session.submit_answer("q1", "no")
        assert step.question.id == "q3"

    def test_visible_question_shown(self):
        session = make_session()
        session.start()
        step = session.submit_answer("q1", "yes")
        assert step.question.id == "q2"

    def test_editing_earlier_answer_resurfaces_question(self):
        session = make_session()
        session.start()
        assert session.submit_answer("q1", "no").question.id == "q3"
        assert session.back().question.id == "q1"
        assert session.submit_answer("q1", "yes").question.id == "q2"

    def test_visible_questions(self):
        session = make_session()
        session.start()
        assert [q.id for q in session.visible_questions()] == ["q1", "q3"]
        session.submit_answer("q1", "yes")
        assert [q.id for q in session.visible_questions()] == ["q1", "q2", "q3"]

    def test_function_call_condition_with_session_registry(self):
        registry = FunctionRegistry()
        registry.register("limit", lambda args, context: 40)
        qn = Questionnaire(
            id="hours",
            questions=[
                Question(id="h", type=QuestionType.NUMBER, text="Hours"),
                Question(
                    id="why",
                    type=QuestionType.TEXT,
                    text="Why so many?",
                    visible_if=Condition("h", ConditionOperator.GREATER_THAN, FunctionCall("limit")),
                ),
            ],
        )
        context = SessionContext(registry=registry, clock=lambda: MOMENT)
        session = FlowSession(qn, context=context)
        session.start()
        assert session.submit_answer("h", 45).question.id == "why"

        other = FlowSession(qn, context=SessionContext(clock=lambda: MOMENT))
        other.start()
        # "limit" is unknown in a fresh registry: the question is hidden
        assert other.submit_answer("h", 45).status is StepStatus.COMPLETED


class TestBack:
    """Test back-navigation."""

    def test_no_history(self):
        session = make_session()
        session.start()
        step = session.back()
        assert step.status is StepStatus.NO_PREVIOUS
        assert step.question.id == "q1"

    def test_back_disabled(self):
        session = make_session(pet_questionnaire(allow_back=False))
        session.start()
        session.submit_answer("q1", "no")
        step = session.back()
        assert step.status is StepStatus.NO_PREVIOUS
        assert step.question.id == "q3"

    def test_back_keeps_answers(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "yes")
        session.back()
        assert session.answers == {"q1": "yes"}

    def test_back_then_same_answer_restores_position(self):
        """back() then re-submitting the same value lands on the same position."""
        session = make_session()
        session.start()
        session.submit_answer("q1", "yes")
        session.submit_answer("q2", "Rex")
        before = session.position.copy()

        session.back()
        session.submit_answer("q2", "Rex")
        assert session.position == before

    def test_back_before_start(self):
        session = make_session()
        with pytest.raises(FlowError):
            session.back()


class TestSkip:
    """Test skipping the current question."""

    def test_skip_optional(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "yes")
        step = session.skip()
        assert step.question.id == "q3"
        assert "q2" not in session.answers
        assert session.snapshot().skipped == ["q2"]

    def test_skip_clears_previous_answer(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "yes")
        session.submit_answer("q2", "Rex")
        session.back()
        session.skip()
        assert "q2" not in session.answers

    def test_skip_required(self):
        session = make_session()
        session.start()
        step = session.skip()
        assert step.status is StepStatus.INVALID
        assert step.validation.error_codes == ["REQUIRED_FIELD"]
        assert step.question.id == "q1"

    def test_skip_not_allowed(self):
        session = make_session(pet_questionnaire(allow_skip=False))
        session.start()
        session.submit_answer("q1", "yes")
        step = session.skip()
        assert step.status is StepStatus.INVALID
        assert step.validation.error_codes == ["SKIP_NOT_ALLOWED"]

    def test_skip_then_back(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "yes")
        session.skip()
        assert session.back().question.id == "q2"


class TestProgress:
    """Progress is measured against the current visible path."""

    def test_unconditional_progress(self):
        qn = Questionnaire(
            id="flat",
            questions=[Question(id=f"q{i}", type=QuestionType.TEXT, text="T") for i in range(3)],
        )
        session = make_session(qn)
        session.start()
        assert session.progress().percent_complete == 0
        assert session.submit_answer("q0", "a").progress.percent_complete == 33
        assert session.submit_answer("q1", "b").progress.percent_complete == 67
        assert session.submit_answer("q2", "c").progress.percent_complete == 100

    def test_total_tracks_branching(self):
        session = make_session()
        step = session.start()
        assert step.progress.total_questions == 2
        assert step.progress.current_question == 1
        step = session.submit_answer("q1", "yes")
        assert step.progress.total_questions == 3
        assert step.progress.current_question == 2
        assert step.progress.answered_questions == 1

    def test_hidden_answers_not_counted(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "yes")
        session.submit_answer("q2", "Rex")
        session.back()
        session.back()
        step = session.submit_answer("q1", "no")
        assert step.progress.total_questions == 2
        assert step.progress.answered_questions == 1

    def test_not_complete_midway(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "no")
        assert not session.is_complete()
        assert not session.all_required_answered()


class TestCrossValidation:
    """Rules are re-checked after each recorded answer."""

    def email_questionnaire(self):
        return Questionnaire(
            id="emails",
            questions=[
                Question(id="e1", type=QuestionType.EMAIL, text="Email"),
                Question(id="e2", type=QuestionType.EMAIL, text="Confirm email"),
                Question(id="n", type=QuestionType.TEXT, text="Notes"),
            ],
        )

    def test_violation_reported_not_blocking(self):
        session = make_session(self.email_questionnaire(), rules=[ConsistencyRule(("e1", "e2"))])
        session.start()
        first = session.submit_answer("e1", "a@example.org")
        assert first.cross_validation.is_valid
        step = session.submit_answer("e2", "b@example.org")
        assert step.status is StepStatus.QUESTION
        assert step.cross_validation.error_codes == [CONSISTENCY_VIOLATION]

    def test_disabled_by_settings(self):
        settings = FlowSettings(cross_validate_on_answer=False)
        session = make_session(self.email_questionnaire(), rules=[ConsistencyRule(("e1", "e2"))], settings=settings)
        session.start()
        session.submit_answer("e1", "a@example.org")
        step = session.submit_answer("e2", "b@example.org")
        assert step.cross_validation is None
        assert not session.validate_cross_questions().is_valid

    def test_no_rules(self):
        session = make_session(self.email_questionnaire())
        session.start()
        assert session.submit_answer("e1", "a@example.org").cross_validation is None

    def test_explicit_rules(self):
        session = make_session(self.email_questionnaire())
        session.start()
        session.submit_answer("e1", "a@example.org")
        session.submit_answer("e2", "b@example.org")
        assert not session.validate_cross_questions([ConsistencyRule(("e1", "e2"))]).is_valid


class TestSnapshot:
    """Snapshot handed to the storage collaborator."""

    def test_snapshot_after_completion(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "yes")
        session.submit_answer("q2", "Rex")
        session.submit_answer("q3", 1)
        snap = session.snapshot()
        assert snap.questionnaire_id == "pets"
        assert snap.questionnaire_version == "2.1.0"
        assert snap.status is FlowStatus.COMPLETED
        assert snap.answers == {"q1": "yes", "q2": "Rex", "q3": 1}
        assert snap.history == ["q1", "q2", "q3"]
        assert snap.started_at == MOMENT
        assert snap.completed_at == MOMENT

    def test_hidden_answers_excluded(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "yes")
        session.submit_answer("q2", "Rex")
        session.back()
        session.back()
        session.submit_answer("q1", "no")
        snap = session.snapshot()
        assert snap.answers == {"q1": "no"}
        assert snap.history == ["q1"]


class TestHiddenAnswers:
    """Answers left on questions that became hidden are kept but not live."""

    def chain(self):
        return Questionnaire(
            id="chain",
            questions=[
                Question(id="q1", type=QuestionType.TEXT, text="One"),
                Question(id="q2", type=QuestionType.TEXT, text="Two",
                         visible_if=Condition("q1", ConditionOperator.EQUALS, "yes")),
                Question(id="q3", type=QuestionType.TEXT, text="Three",
                         visible_if=Condition("q2", ConditionOperator.EQUALS, "detail")),
                Question(id="q4", type=QuestionType.TEXT, text="Four"),
            ],
        )

    def edited_session(self):
        session = make_session(self.chain(), rules=[DependencyRule("q2", "q4")])
        session.start()
        session.submit_answer("q1", "yes")
        session.submit_answer("q2", "detail")
        session.back()
        session.back()
        return session

    def test_chained_dependent_stays_hidden(self):
        session = self.edited_session()
        step = session.submit_answer("q1", "no")
        assert step.question.id == "q4"
        assert [q.id for q in session.visible_questions()] == ["q1", "q4"]

    def test_rules_ignore_hidden_answers(self):
        session = self.edited_session()
        step = session.submit_answer("q1", "no")
        assert step.cross_validation.is_valid
        assert session.validate_cross_questions().is_valid

    def test_views_agree(self):
        session = self.edited_session()
        session.submit_answer("q1", "no")
        assert session.visible_answers() == {"q1": "no"}
        assert session.snapshot().answers == session.visible_answers()
        assert session.progress().answered_questions == 1
        # Still recorded, ready for the branch to come back
        assert session.answers == {"q1": "no", "q2": "detail"}

    def test_answer_returns_with_its_branch(self):
        session = self.edited_session()
        session.submit_answer("q1", "no")
        session.back()
        step = session.submit_answer("q1", "yes")
        assert step.question.id == "q2"
        assert session.visible_answers() == {"q1": "yes", "q2": "detail"}


class TestRequiredIf:
    """required_if makes an optional question required while it holds."""

    def questionnaire(self):
        return Questionnaire(
            id="req",
            questions=[
                Question(id="q1", type=QuestionType.SINGLE_CHOICE, text="Employed?",
                         options=[Option("yes"), Option("no")]),
                Question(id="q2", type=QuestionType.TEXT, text="Employer",
                         required_if=Condition("q1", ConditionOperator.EQUALS, "yes")),
            ],
            config=QuestionnaireConfig(allow_skip=True),
        )

    def test_empty_answer_rejected_while_required(self):
        session = make_session(self.questionnaire())
        session.start()
        session.submit_answer("q1", "yes")
        assert session.is_required(session.current_question)
        step = session.submit_answer("q2", "")
        assert step.validation.error_codes == ["REQUIRED_FIELD"]

    def test_skip_refused_while_required(self):
        session = make_session(self.questionnaire())
        session.start()
        session.submit_answer("q1", "yes")
        step = session.skip()
        assert step.status is StepStatus.INVALID
        assert step.validation.error_codes == ["REQUIRED_FIELD"]

    def test_optional_otherwise(self):
        session = make_session(self.questionnaire())
        session.start()
        session.submit_answer("q1", "no")
        assert session.skip().status is StepStatus.COMPLETED
        assert session.is_complete()

    def test_question_definition_unchanged(self):
        qn = self.questionnaire()
        session = make_session(qn)
        session.start()
        session.submit_answer("q1", "yes")
        session.submit_answer("q2", "")
        assert qn.questions[1].required is False


class TestJumpTo:
    """Jumping back to a visited question."""

    def test_jump_back_truncates_history(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "yes")
        session.submit_answer("q2", "Rex")
        step = session.jump_to("q1")
        assert step.status is StepStatus.QUESTION
        assert step.question.id == "q1"
        assert session.position == FlowPosition(current_index=0, history=[])
        assert session.answers == {"q1": "yes", "q2": "Rex"}

    def test_jump_to_current_is_a_no_op(self):
        session = make_session()
        session.start()
        session.submit_answer("q1", "yes")
        assert session.jump_to("q2").question.id == "q2"
        assert session.position.history == [0]

    def test_unknown_question(self):
        session = make_session()
        session.start()
        with pytest.raises(FlowError) as exc_info:
            session.jump_to("ghost")
        assert exc_info.value.code is FlowErrorCode.QUESTION_NOT_FOUND

    def test_forward_jump_refused(self):
        session = make_session()
        session.start()
        with pytest.raises(FlowError) as exc_info:
            session.jump_to("q3")
        assert exc_info.value.code is FlowErrorCode.INVALID_NAVIGATION

    def test_back_disabled(self):
        session = make_session(pet_questionnaire(allow_back=False))
        session.start()
        session.submit_answer("q1", "no")
        assert session.jump_to("q1").status is StepStatus.NO_PREVIOUS

    def test_requires_in_progress(self):
        with pytest.raises(FlowError) as exc_info:
            make_session().jump_to("q1")
        assert exc_info.value.code is FlowErrorCode.NOT_IN_PROGRESS


def test_session_logs_lifecycle(caplog):
    session = make_session()
    with caplog.at_level(logging.INFO, logger="questionflow.session"):
        session.start()
        session.submit_answer("q1", "no")
        session.submit_answer("q3", 0)
    assert "Started questionnaire pets v2.1.0" in caplog.text
    assert "Completed questionnaire pets" in caplog.text


def test_sessions_are_independent():
    qn = pet_questionnaire()
    a = make_session(qn)
    b = make_session(qn)
    a.start()
    b.start()
    a.submit_answer("q1", "yes")
    assert b.answers == {}
    assert b.current_question.id == "q1"
