"""
Questionnaire Analyzer: non-interactive diagnostics for questionnaire
definitions and their cross-validation rules.

At runtime a malformed condition silently hides its question (or, for
required_if, leaves it optional).
This module is where the same problems surface loudly, as warnings, for
CI and authoring tools:
    - Duplicate question ids
    - Forward, self and unknown condition references
    - Unknown function names in conditions
    - Numeric comparisons against non-numeric questions
    - Dependency cycles
    - Rules that mention unknown questions

IMPORTANT: This module does NOT modify the questionnaire.
It only produces read-only reports.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from .cross_validation import ConsistencyRule, CrossValidationRule, rule_question_ids
from .expressions import FunctionCall
from .functions import FunctionRegistry
from .graph import DependencyGraph
from .model import Questionnaire


@dataclass
class QuestionnaireReport:
    """Analysis report for a questionnaire and its rules."""

    questionnaire_id: str
    total_questions: int = 0
    required_questions: int = 0
    conditional_questions: int = 0
    conditionally_required: int = 0
    total_rules: int = 0

    # Structure
    duplicate_ids: Set[str] = field(default_factory=set)
    question_types: Dict[str, int] = field(default_factory=dict)

    # Condition references (visible_if, hide_if, required_if)
    forward_references: Set[str] = field(default_factory=set)
    self_references: Set[str] = field(default_factory=set)
    unknown_references: Set[str] = field(default_factory=set)
    unknown_functions: Set[str] = field(default_factory=set)
    type_mismatches: Set[str] = field(default_factory=set)
    dependents: Dict[str, List[str]] = field(default_factory=dict)
    has_cycles: bool = False
    cycle_example: Optional[List[str]] = None

    # Rules
    rule_unknown_questions: Set[str] = field(default_factory=set)
    undersized_consistency_rules: int = 0

    # Warnings and flags
    warnings: List[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.warnings

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)


def analyze_questionnaire(
    questionnaire: Questionnaire,
    rules: Sequence[CrossValidationRule] = (),
    registry: Optional[FunctionRegistry] = None,
) -> QuestionnaireReport:
    """
    Perform configuration analysis of a Questionnaire.

    Args:
        questionnaire: Definition to check
        rules: Cross-validation rules to check against it
        registry: Registry used to resolve function names
                  (a registry with built-ins when omitted)

    Returns a QuestionnaireReport with findings and warnings.
    """
    registry = registry if registry is not None else FunctionRegistry()
    report = QuestionnaireReport(questionnaire_id=questionnaire.id)
    questions = questionnaire.questions

    # =========================================================================
    # 1. INVENTORY
    # =========================================================================

    report.total_questions = len(questions)
    report.total_rules = len(rules)
    report.required_questions = sum(1 for q in questions if q.required)
    report.conditional_questions = sum(1 for q in questions if q.is_conditional)
    report.conditionally_required = sum(1 for q in questions if q.required_if is not None)
    report.question_types = dict(Counter(q.type.value for q in questions))

    id_counts = Counter(q.id for q in questions)
    report.duplicate_ids = {qid for qid, count in id_counts.items() if count > 1}

    # First occurrence wins, as in Questionnaire.index_of
    position: Dict[str, int] = {}
    for index, question in enumerate(questions):
        position.setdefault(question.id, index)

    # =========================================================================
    # 2. CONDITION REFERENCES
    # =========================================================================

    for index, question in enumerate(questions):
        for _, condition in question.condition_refs():
            ref = condition.question_id
            if ref == question.id:
                report.self_references.add(question.id)
            elif ref not in position:
                report.unknown_references.add(question.id)
            elif position[ref] >= index:
                report.forward_references.add(question.id)

            if isinstance(condition.value, FunctionCall) and not registry.has(condition.value.name):
                report.unknown_functions.add(condition.value.name)

            referenced = questionnaire.get_question(ref)
            if condition.operator.is_ordering and referenced is not None and not referenced.type.is_numeric:
                report.type_mismatches.add(question.id)

    graph = DependencyGraph.from_questionnaire(questionnaire)
    report.dependents = {node: graph.dependents_of(node) for node in graph.nodes() if graph.dependents_of(node)}
    cycles = graph.find_cycles()
    if cycles:
        report.has_cycles = True
        report.cycle_example = cycles[0]

    # =========================================================================
    # 3. CROSS-VALIDATION RULES
    # =========================================================================

    for rule in rules:
        for qid in rule_question_ids(rule):
            if qid not in position:
                report.rule_unknown_questions.add(qid)
        if isinstance(rule, ConsistencyRule) and len(rule.questions) < 2:
            report.undersized_consistency_rules += 1

    # =========================================================================
    # 4. WARNING FLAGS
    # =========================================================================

    if report.total_questions == 0:
        report.add_warning("Questionnaire has no questions")

    if report.duplicate_ids:
        report.add_warning(f"Duplicate question ids: {', '.join(sorted(report.duplicate_ids))}")

    if report.forward_references:
        report.add_warning(
            f"Forward condition references (the condition is treated as malformed): "
            f"{', '.join(sorted(report.forward_references))}"
        )

    if report.self_references:
        report.add_warning(f"Self-referencing conditions: {', '.join(sorted(report.self_references))}")

    if report.unknown_references:
        report.add_warning(
            f"Conditions referencing unknown questions: {', '.join(sorted(report.unknown_references))}"
        )

    if report.unknown_functions:
        report.add_warning(f"Unknown condition functions: {', '.join(sorted(report.unknown_functions))}")

    if report.type_mismatches:
        report.add_warning(
            f"Numeric comparison against non-numeric question: {', '.join(sorted(report.type_mismatches))}"
        )

    if report.has_cycles:
        report.add_warning(f"Dependency cycle detected: {' -> '.join(report.cycle_example)}")

    if report.rule_unknown_questions:
        report.add_warning(
            f"Validation rules reference unknown questions: {', '.join(sorted(report.rule_unknown_questions))}"
        )

    if report.undersized_consistency_rules:
        report.add_warning(
            f"Consistency rules with fewer than two questions: {report.undersized_consistency_rules}"
        )

    return report
