"""
End-to-end tests driving the example questionnaire through a session.
"""

from datetime import datetime, timezone

import pytest
from questionflow.context import SessionContext
from questionflow.cross_validation import CONSISTENCY_VIOLATION, DEPENDENCY_VIOLATION
from questionflow.examples import build_example_questionnaire, build_example_rules
from questionflow.flow import FlowSession, FlowStatus, StepStatus

MOMENT = datetime(2024, 6, 15, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def session():
    s = FlowSession(
        build_example_questionnaire(),
        rules=build_example_rules(),
        context=SessionContext.fixed(MOMENT),
    )
    s.start()
    return s


def answer_until(session, answers, stop_at=None):
    """Submit scripted answers until `stop_at` is current or the flow ends."""
    step = None
    while session.current_question is not None and session.current_question.id != stop_at:
        qid = session.current_question.id
        step = session.submit_answer(qid, answers[qid])
        assert step.status is not StepStatus.INVALID, step.validation.errors
    return step


BASE = {
    "q_name": "Alex",
    "q_email": "alex@example.org",
    "q_email_confirm": "alex@example.org",
    "q_contract_hours": 37.5,
    "q_hours_week": 30,
    "q_satisfaction": 4,
    "q_consent": True,
}


class TestExampleQuestionnaire:

    def test_structure(self):
        qn = build_example_questionnaire()
        assert qn.id == "household_survey"
        assert len(qn) == 12
        assert qn.config.allow_skip

    def test_no_pet_path(self, session):
        step = answer_until(session, dict(BASE, q_has_pet="no"))
        assert step.status is StepStatus.COMPLETED
        assert session.status is FlowStatus.COMPLETED
        assert "q_pet_types" not in session.answers
        assert "q_overtime_paid" not in session.answers
        assert step.progress.percent_complete == 100

    def test_pet_branch(self, session):
        answers = dict(
            BASE,
            q_has_pet="yes",
            q_pet_types=["cat"],
            q_last_vet_visit="2024-05-01",
        )
        answer_until(session, answers)
        ids = [q.id for q in session.visible_questions()]
        assert "q_pet_types" in ids
        assert "q_last_vet_visit" in ids
        # No dog selected, so no dog count
        assert "q_dog_count" not in ids

    def test_overtime_question_from_function_call(self, session):
        answers = dict(BASE, q_has_pet="no", q_hours_week=45, q_overtime_paid=False)
        answer_until(session, answers, stop_at="q_hours_week")
        step = session.submit_answer("q_hours_week", 45)
        assert step.question.id == "q_overtime_paid"

    def test_vet_visit_cannot_be_in_the_future(self, session):
        answer_until(
            session,
            dict(BASE, q_has_pet="yes", q_pet_types=["dog"], q_dog_count=1),
            stop_at="q_last_vet_visit",
        )
        step = session.submit_answer("q_last_vet_visit", "2024-06-16")
        assert step.validation.error_codes == ["DATE_TOO_LATE"]

    def test_email_mismatch_reported(self, session):
        answer_until(session, BASE, stop_at="q_email_confirm")
        step = session.submit_answer("q_email_confirm", "someone@example.org")
        assert step.cross_validation.error_codes[0] == CONSISTENCY_VIOLATION
        assert step.cross_validation.errors[0].message == "Email addresses must match"

    def test_skipped_vet_visit_violates_dependency(self, session):
        answer_until(
            session,
            dict(BASE, q_has_pet="yes", q_pet_types=["dog"], q_dog_count=2),
            stop_at="q_last_vet_visit",
        )
        step = session.skip()
        assert DEPENDENCY_VIOLATION in step.cross_validation.error_codes

    def test_consent_must_be_given(self, session):
        answer_until(session, dict(BASE, q_has_pet="no"), stop_at="q_consent")
        step = session.submit_answer("q_consent", False)
        assert step.validation.error_codes == ["MUST_BE_TRUE"]

    def test_many_dogs_make_vet_visit_required(self, session):
        answer_until(
            session,
            dict(BASE, q_has_pet="yes", q_pet_types=["dog"], q_dog_count=3),
            stop_at="q_last_vet_visit",
        )
        step = session.skip()
        assert step.status is StepStatus.INVALID
        assert step.validation.error_codes == ["REQUIRED_FIELD"]

    def test_no_satisfaction_question_without_work(self, session):
        answer_until(session, dict(BASE, q_has_pet="no", q_hours_week=0), stop_at="q_hours_week")
        step = session.submit_answer("q_hours_week", 0)
        assert step.question.id == "q_consent"

    def test_dog_count_dropped_when_pets_removed(self, session):
        answer_until(
            session,
            dict(BASE, q_has_pet="yes", q_pet_types=["dog"], q_dog_count=2),
            stop_at="q_last_vet_visit",
        )
        session.jump_to("q_has_pet")
        step = session.submit_answer("q_has_pet", "no")
        assert step.question.id == "q_contract_hours"
        assert "q_dog_count" not in session.visible_answers()
        assert "q_dog_count" in session.answers
