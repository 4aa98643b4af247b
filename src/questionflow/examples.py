"""
Example questionnaire builder used by the demos and tests.

Builds a small household survey with contact details, a pet branch
(grouped conditions and a conditionally required vet visit), a
working-hours branch driven by a function call and a consent question,
plus a matching set of cross-question rules.
"""
from typing import List

from questionflow.cross_validation import (
    CompletenessRule,
    ConsistencyRule,
    CrossValidationRule,
    DependencyRule,
)
from questionflow.expressions import AllOf, Condition, ConditionOperator, FunctionCall
from questionflow.model import (
    TODAY,
    Option,
    Question,
    Questionnaire,
    QuestionnaireConfig,
    QuestionType,
    ValidationRules,
)


def build_example_questionnaire() -> Questionnaire:
    questions = [
        Question(
            id="q_name",
            type=QuestionType.TEXT,
            text="What is your name?",
            required=True,
            validation=ValidationRules(min_length=2, max_length=50),
        ),
        Question(
            id="q_email",
            type=QuestionType.EMAIL,
            text="What is your email address?",
            required=True,
        ),
        Question(
            id="q_email_confirm",
            type=QuestionType.EMAIL,
            text="Please confirm your email address",
            required=True,
        ),
        Question(
            id="q_has_pet",
            type=QuestionType.SINGLE_CHOICE,
            text="Do you have any pets?",
            required=True,
            options=[Option("yes", "Yes"), Option("no", "No")],
        ),
        Question(
            id="q_pet_types",
            type=QuestionType.MULTIPLE_CHOICE,
            text="Which pets do you have?",
            required=True,
            options=[Option("dog", "Dog"), Option("cat", "Cat"), Option("bird", "Bird"), Option("fish", "Fish")],
            validation=ValidationRules(min_selections=1, max_selections=3),
            visible_if=Condition("q_has_pet", ConditionOperator.EQUALS, "yes"),
        ),
        Question(
            id="q_dog_count",
            type=QuestionType.NUMBER,
            text="How many dogs do you have?",
            validation=ValidationRules(min=1, max=10, integer=True),
            visible_if=AllOf((
                Condition("q_has_pet", ConditionOperator.EQUALS, "yes"),
                Condition("q_pet_types", ConditionOperator.CONTAINS, "dog"),
            )),
        ),
        Question(
            id="q_last_vet_visit",
            type=QuestionType.DATE,
            text="When did you last visit a vet?",
            validation=ValidationRules(max_date=TODAY),
            visible_if=Condition("q_has_pet", ConditionOperator.EQUALS, "yes"),
            required_if=Condition("q_dog_count", ConditionOperator.GREATER_THAN_OR_EQUAL, 3),
        ),
        Question(
            id="q_contract_hours",
            type=QuestionType.NUMBER,
            text="How many hours per week are you contracted for?",
            required=True,
            validation=ValidationRules(min=0, max=80),
        ),
        Question(
            id="q_hours_week",
            type=QuestionType.NUMBER,
            text="How many hours did you work last week?",
            required=True,
            validation=ValidationRules(min=0, max=168),
        ),
        Question(
            id="q_overtime_paid",
            type=QuestionType.BOOLEAN,
            text="Was the extra time paid?",
            description="Shown when last week's hours exceed the contracted hours",
            visible_if=Condition(
                "q_hours_week",
                ConditionOperator.GREATER_THAN,
                FunctionCall("max", ("q_contract_hours",)),
            ),
        ),
        Question(
            id="q_satisfaction",
            type=QuestionType.RATING,
            text="How satisfied are you with your work-life balance?",
            hide_if=Condition("q_hours_week", ConditionOperator.EQUALS, 0),
        ),
        Question(
            id="q_consent",
            type=QuestionType.BOOLEAN,
            text="Do you agree to the terms?",
            required=True,
            validation=ValidationRules(must_be_true=True),
        ),
    ]

    return Questionnaire(
        id="household_survey",
        version="1.0.0",
        title="Household Survey",
        questions=questions,
        metadata={"author": "survey team", "tags": ["example"]},
        config=QuestionnaireConfig(allow_back=True, allow_skip=True),
    )


def build_example_rules() -> List[CrossValidationRule]:
    return [
        ConsistencyRule(
            questions=("q_email", "q_email_confirm"),
            must_match=True,
            message="Email addresses must match",
        ),
        DependencyRule(
            dependent_question="q_dog_count",
            required_question="q_last_vet_visit",
        ),
        CompletenessRule(required_questions=("q_name", "q_email", "q_consent")),
    ]
