"""
Serialization helpers for questionflow objects (Questionnaire, Question,
Condition, cross-validation rules, session snapshots).

Provides JSON/YAML round-trip via an intermediate dict representation.
Keys are snake_case; operators and question types are written as their
enum values; function calls are written as {"function": name, "args": [...]}.
"""
from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, List

import yaml

from questionflow.cross_validation import (
    CompletenessRule,
    ConsistencyRule,
    CrossValidationRule,
    DependencyRule,
)
from questionflow.expressions import AllOf, Condition, ConditionGroup, ConditionOperator, FunctionCall
from questionflow.flow import SessionSnapshot
from questionflow.model import (
    Option,
    Question,
    Questionnaire,
    QuestionnaireConfig,
    QuestionType,
    ValidationRules,
)


def value_to_dict(value: Any) -> Any:
    if isinstance(value, FunctionCall):
        return {"function": value.name, "args": list(value.args)}
    return value


def value_from_dict(d: Any) -> Any:
    if isinstance(d, dict) and "function" in d:
        return FunctionCall(name=d["function"], args=tuple(d.get("args", [])))
    return d


def condition_to_dict(c: Condition | None) -> Dict[str, Any] | None:
    if c is None:
        return None
    return {
        "question_id": c.question_id,
        "operator": c.operator.value,
        "value": value_to_dict(c.value),
    }


def condition_from_dict(d: Dict[str, Any] | None) -> Condition | None:
    if d is None:
        return None
    return Condition(
        question_id=d["question_id"],
        operator=ConditionOperator(d["operator"]),
        value=value_from_dict(d.get("value")),
    )


def group_to_dict(g: ConditionGroup | None) -> Any:
    # An AllOf group is written as a list of conditions
    if isinstance(g, AllOf):
        return [condition_to_dict(c) for c in g.conditions]
    return condition_to_dict(g)


def group_from_dict(d: Any) -> ConditionGroup | None:
    if isinstance(d, list):
        return AllOf(tuple(condition_from_dict(c) for c in d))
    return condition_from_dict(d)


def option_to_dict(o: Option) -> Dict[str, Any]:
    return {"value": o.value, "label": o.label}


def option_from_dict(d: Any) -> Option:
    # Bare strings are accepted as shorthand for {"value": s}
    if isinstance(d, str):
        return Option(value=d)
    return Option(value=d["value"], label=d.get("label"))


_RULE_FIELDS = tuple(ValidationRules.__dataclass_fields__)


def validation_to_dict(v: ValidationRules | None) -> Dict[str, Any] | None:
    if v is None:
        return None
    defaults = ValidationRules()
    # Only fields that differ from the defaults are written
    return {
        name: getattr(v, name)
        for name in _RULE_FIELDS
        if getattr(v, name) != getattr(defaults, name)
    }


def validation_from_dict(d: Dict[str, Any] | None) -> ValidationRules | None:
    if d is None:
        return None
    unknown = set(d) - set(_RULE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown validation rule fields: {', '.join(sorted(unknown))}")
    return ValidationRules(**d)


def question_to_dict(q: Question) -> Dict[str, Any]:
    return {
        "id": q.id,
        "type": q.type.value,
        "text": q.text,
        "description": q.description,
        "required": q.required,
        "validation": validation_to_dict(q.validation),
        "options": [option_to_dict(o) for o in q.options],
        "visible_if": group_to_dict(q.visible_if),
        "hide_if": group_to_dict(q.hide_if),
        "required_if": group_to_dict(q.required_if),
    }


def question_from_dict(d: Dict[str, Any]) -> Question:
    return Question(
        id=d["id"],
        type=QuestionType(d["type"]),
        text=d.get("text", ""),
        description=d.get("description"),
        required=d.get("required", False),
        validation=validation_from_dict(d.get("validation")),
        options=[option_from_dict(o) for o in d.get("options", [])],
        visible_if=group_from_dict(d.get("visible_if")),
        hide_if=group_from_dict(d.get("hide_if")),
        required_if=group_from_dict(d.get("required_if")),
    )


def config_to_dict(c: QuestionnaireConfig) -> Dict[str, Any]:
    return {"allow_back": c.allow_back, "allow_skip": c.allow_skip}


def config_from_dict(d: Dict[str, Any] | None) -> QuestionnaireConfig:
    d = d or {}
    return QuestionnaireConfig(
        allow_back=d.get("allow_back", True),
        allow_skip=d.get("allow_skip", False),
    )


def questionnaire_to_dict(q: Questionnaire) -> Dict[str, Any]:
    return {
        "id": q.id,
        "version": q.version,
        "title": q.title,
        "questions": [question_to_dict(question) for question in q.questions],
        "metadata": q.metadata,
        "config": config_to_dict(q.config),
    }


def questionnaire_from_dict(d: Dict[str, Any]) -> Questionnaire:
    return Questionnaire(
        id=d["id"],
        version=d.get("version", "1.0.0"),
        title=d.get("title", ""),
        questions=[question_from_dict(q) for q in d.get("questions", [])],
        metadata=d.get("metadata", {}),
        config=config_from_dict(d.get("config")),
    )


def questionnaire_to_json(q: Questionnaire) -> str:
    return json.dumps(questionnaire_to_dict(q), sort_keys=True)


def questionnaire_from_json(s: str) -> Questionnaire:
    d = json.loads(s)
    return questionnaire_from_dict(d)


def questionnaire_to_yaml(q: Questionnaire) -> str:
    return yaml.safe_dump(questionnaire_to_dict(q), sort_keys=False)


def questionnaire_from_yaml(s: str) -> Questionnaire:
    d = yaml.safe_load(s)
    return questionnaire_from_dict(d)


# =========================================================================
# CROSS-VALIDATION RULES
# =========================================================================


def rule_to_dict(r: CrossValidationRule) -> Dict[str, Any]:
    if isinstance(r, DependencyRule):
        d: Dict[str, Any] = {
            "type": r.type,
            "dependent_question": r.dependent_question,
            "required_question": r.required_question,
        }
    elif isinstance(r, ConsistencyRule):
        d = {"type": r.type, "questions": list(r.questions), "must_match": r.must_match}
    elif isinstance(r, CompletenessRule):
        d = {"type": r.type, "required_questions": list(r.required_questions)}
    else:
        raise TypeError(f"Unsupported rule type: {type(r)}")
    if r.message is not None:
        d["message"] = r.message
    return d


def rule_from_dict(d: Dict[str, Any]) -> CrossValidationRule:
    """
    Build a rule from its dict form.

    Raises:
        ValueError: unknown or missing "type" tag
    """
    t = d.get("type")
    if t == "dependency":
        return DependencyRule(
            dependent_question=d["dependent_question"],
            required_question=d["required_question"],
            message=d.get("message"),
        )
    if t == "consistency":
        return ConsistencyRule(
            questions=tuple(d["questions"]),
            must_match=d.get("must_match", True),
            message=d.get("message"),
        )
    if t == "completeness":
        return CompletenessRule(
            required_questions=tuple(d["required_questions"]),
            message=d.get("message"),
        )
    raise ValueError(f"Unknown cross-validation rule type: {t!r}")


def rules_to_list(rules: List[CrossValidationRule]) -> List[Dict[str, Any]]:
    return [rule_to_dict(r) for r in rules]


def rules_from_list(items: List[Dict[str, Any]] | None) -> List[CrossValidationRule]:
    return [rule_from_dict(d) for d in items or []]


# =========================================================================
# SESSION SNAPSHOTS
# =========================================================================


def answer_to_plain(value: Any) -> Any:
    """JSON-safe form of an answer; dates become ISO strings."""
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [answer_to_plain(v) for v in value]
    return value


def snapshot_to_dict(s: SessionSnapshot) -> Dict[str, Any]:
    """Plain-data form of a snapshot for the storage collaborator."""
    return {
        "questionnaire_id": s.questionnaire_id,
        "questionnaire_version": s.questionnaire_version,
        "status": s.status.value,
        "answers": {k: answer_to_plain(v) for k, v in s.answers.items()},
        "history": list(s.history),
        "skipped": list(s.skipped),
        "started_at": s.started_at.isoformat() if s.started_at else None,
        "updated_at": s.updated_at.isoformat() if s.updated_at else None,
        "completed_at": s.completed_at.isoformat() if s.completed_at else None,
    }


def snapshot_to_json(s: SessionSnapshot) -> str:
    return json.dumps(snapshot_to_dict(s), sort_keys=True)
