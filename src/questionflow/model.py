"""
Core Questionnaire Model Objects

Defines the data structures a questionnaire session works over:
    - Options (choices offered by choice questions)
    - Validation rules (per-type answer constraints)
    - Questions (the 8 question variants, selected by a type tag)
    - Questionnaires (ordered root container)

ARCHITECTURAL RULE:
    These objects:
        - Know nothing about prompting or storage
        - Are read-only for the duration of a session
        - Are fully serializable (see questionflow.serialization)
        - Represent structure, not behavior
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .expressions import Condition, ConditionGroup, group_conditions


class QuestionType(Enum):
    """
    The closed set of question variants.

    New variants are rare and centrally defined; every consumer that
    dispatches on this tag handles all members explicitly.
    """

    TEXT = "text"
    NUMBER = "number"
    EMAIL = "email"
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    BOOLEAN = "boolean"
    DATE = "date"
    RATING = "rating"

    @property
    def is_numeric(self) -> bool:
        return self in (QuestionType.NUMBER, QuestionType.RATING)

    @property
    def is_choice(self) -> bool:
        return self in (QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE)


# Symbolic date bound resolved against the session clock
TODAY = "today"

# Question attributes that may hold a condition group, in evaluation order
CONDITION_SLOTS = ("visible_if", "hide_if", "required_if")


@dataclass(frozen=True)
class Option:
    """
    One selectable option of a choice question.

    Properties:
        value: Stored answer value
        label: Text shown to the respondent (defaults to value)
    """

    value: str
    label: Optional[str] = None

    @property
    def display(self) -> str:
        return self.label if self.label is not None else self.value


@dataclass
class ValidationRules:
    """
    Optional per-type answer constraints.

    Only the fields relevant to a question's type are consulted:

        text / email:      min_length, max_length, pattern, pattern_message,
                           custom_domains (email only)
        number / rating:   min, max, integer, precision
        date:              min_date, max_date  (ISO date or "today")
        multiple choice:   min_selections, max_selections
        boolean:           must_be_true

    Unset fields mean "no constraint".
    """

    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    pattern_message: Optional[str] = None
    custom_domains: List[str] = field(default_factory=list)
    min: Optional[float] = None
    max: Optional[float] = None
    integer: bool = False
    precision: Optional[int] = None
    min_date: Optional[str] = None
    max_date: Optional[str] = None
    min_selections: Optional[int] = None
    max_selections: Optional[int] = None
    must_be_true: bool = False


@dataclass
class Question:
    """
    A single question of a questionnaire.

    Properties:
        id:
            Unique, stable identifier within the questionnaire
            Examples: "q_age", "q_has_pet"

        type:
            QuestionType tag selecting the variant

        text:
            Human-readable question text

        description:
            Optional help text

        required:
            If True, an empty answer is rejected and the question
            cannot be skipped

        validation:
            Optional ValidationRules for the variant

        options:
            Ordered options (choice questions only)

        visible_if:
            Optional Condition (or AllOf group) deciding whether the
            question is shown. If None: the question is always visible.

        hide_if:
            Optional Condition or AllOf group that hides the question
            when it holds, even if visible_if is satisfied

        required_if:
            Optional Condition or AllOf group making an otherwise
            optional question required while it holds

    ARCHITECTURAL RULE:
        - visible_if is about reaching the question
        - validation is about accepting the answer
        - These are separate concerns
    """

    id: str
    type: QuestionType
    text: str
    description: Optional[str] = None
    required: bool = False
    validation: Optional[ValidationRules] = None
    options: List[Option] = field(default_factory=list)
    visible_if: Optional[ConditionGroup] = None
    hide_if: Optional[ConditionGroup] = None
    required_if: Optional[ConditionGroup] = None

    @property
    def option_values(self) -> List[str]:
        return [opt.value for opt in self.options]

    @property
    def rules(self) -> ValidationRules:
        """Validation rules, or an empty rule set when none are declared."""
        return self.validation if self.validation is not None else ValidationRules()

    @property
    def is_conditional(self) -> bool:
        return self.visible_if is not None or self.hide_if is not None

    def condition_refs(self) -> List[Tuple[str, Condition]]:
        """
        Every condition attached to the question, tagged with its slot.

        Returns:
            (slot, condition) pairs; slot is "visible_if", "hide_if"
            or "required_if"
        """
        refs = []
        for slot in CONDITION_SLOTS:
            for condition in group_conditions(getattr(self, slot)):
                refs.append((slot, condition))
        return refs


@dataclass
class QuestionnaireConfig:
    """
    Per-questionnaire navigation switches.

    Properties:
        allow_back: Respondents may navigate to earlier questions
        allow_skip: Respondents may skip optional questions
    """

    allow_back: bool = True
    allow_skip: bool = False


@dataclass
class Questionnaire:
    """
    Root container: an ordered sequence of questions.

    Declared order is significant:
        - navigation walks it front to back
        - a visibility condition may only reference an earlier question

    Properties:
        id:
            Questionnaire identifier

        version:
            Version string; id + version identify a definition

        title:
            Human-readable title

        questions:
            Ordered questions (ids unique)

        metadata:
            Arbitrary key-value pairs (author, tags, ...)

        config:
            QuestionnaireConfig navigation switches

    INVARIANTS:
        - Question ids are unique
        - Visibility references point strictly backwards
        Both are assumed, not enforced; questionflow.analyzer reports
        violations.
    """

    id: str
    version: str = "1.0.0"
    title: str = ""
    questions: List[Question] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    config: QuestionnaireConfig = field(default_factory=QuestionnaireConfig)

    def get_question(self, question_id: str) -> Optional[Question]:
        """
        Retrieve a question by ID.

        Args:
            question_id: Question identifier

        Returns:
            Question object or None if not found
        """
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def index_of(self, question_id: str) -> int:
        """
        Position of a question in declared order.

        Returns:
            Zero-based index, or -1 if the id is unknown
        """
        for index, question in enumerate(self.questions):
            if question.id == question_id:
                return index
        return -1

    def __len__(self) -> int:
        return len(self.questions)
