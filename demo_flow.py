#!/usr/bin/env python3
"""
Flow Demo: drive a scripted respondent through the example questionnaire.

Shows the full workflow:
1. Load settings and configure logging
2. Start a session over the example questionnaire and rules
3. Answer, correct an invalid answer, go back and change a branch
4. Print the final snapshot that storage would receive
"""

import json

from questionflow.config import load_settings
from questionflow.context import SessionContext
from questionflow.examples import build_example_questionnaire, build_example_rules
from questionflow.flow import FlowSession, StepStatus
from questionflow.logging_setup import configure_logging
from questionflow.serialization import snapshot_to_dict

SCRIPTED_ANSWERS = {
    "q_name": "Alex",
    "q_email": "alex@example.org",
    "q_email_confirm": "alex@example.org",
    "q_has_pet": "yes",
    "q_pet_types": ["dog", "cat"],
    "q_dog_count": 2,
    "q_last_vet_visit": "2024-03-01",
    "q_contract_hours": 37.5,
    "q_hours_week": 45,
    "q_overtime_paid": True,
    "q_satisfaction": 4,
    "q_consent": True,
}


def show(step):
    progress = step.progress
    where = step.question.id if step.question else "-"
    print(f"   [{progress.percent_complete:3d}%] {step.status.value:<11} {where}")
    if step.validation and step.validation.errors:
        for issue in step.validation.errors:
            print(f"          ✗ {issue.code}: {issue.message}")
    if step.cross_validation and step.cross_validation.errors:
        for issue in step.cross_validation.errors:
            print(f"          ⚠ {issue.code}: {issue.message}")


def main():
    settings = load_settings()
    configure_logging(settings.log_level)

    session = FlowSession(
        build_example_questionnaire(),
        rules=build_example_rules(),
        context=SessionContext(settings=settings),
    )

    print("=" * 80)
    print("FLOW DEMO: household_survey")
    print("=" * 80)

    # =========================================================================
    # STEP 1: Start and hit a validation error
    # =========================================================================
    print("\n1. STARTING SESSION...")
    step = session.start()
    show(step)
    step = session.submit_answer("q_name", "A")
    show(step)

    # =========================================================================
    # STEP 2: Change a branch after going back
    # =========================================================================
    print("\n2. ANSWERING, THEN GOING BACK TO CHANGE A BRANCH...")
    step = session.submit_answer("q_name", SCRIPTED_ANSWERS["q_name"])
    show(step)
    while step.status is StepStatus.QUESTION and step.question.id != "q_pet_types":
        step = session.submit_answer(step.question.id, SCRIPTED_ANSWERS[step.question.id])
        show(step)
    step = session.back()
    show(step)
    step = session.submit_answer("q_has_pet", "no")
    show(step)
    step = session.back()
    show(step)

    # =========================================================================
    # STEP 3: Answer the rest
    # =========================================================================
    print("\n3. ANSWERING THE REST...")
    while step.status is StepStatus.QUESTION:
        step = session.submit_answer(step.question.id, SCRIPTED_ANSWERS[step.question.id])
        show(step)

    # =========================================================================
    # STEP 4: Snapshot for storage
    # =========================================================================
    print("\n4. SNAPSHOT")
    print(json.dumps(snapshot_to_dict(session.snapshot()), indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
