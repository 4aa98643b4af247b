"""
Graphviz DOT diagram generator for questionnaires.

Renders the condition dependency graph of a Questionnaire: one node per
question in declared order, one edge from each referenced question to the
question whose condition reads it. visible_if edges are solid, hide_if
edges dashed and required_if edges dotted.

Supports two modes:
    - SIMPLE: Question ids and text, unlabeled edges
    - DETAILED: Question type/required on nodes, conditions on edges
"""

from enum import Enum
from typing import List

from questionflow.expressions import Condition, ConditionOperator, FunctionCall
from questionflow.model import Question, Questionnaire


class DotMode(Enum):
    """Visualization modes for DOT output."""
    SIMPLE = "simple"          # Just the dependency structure
    DETAILED = "detailed"      # Include types and conditions


# Edge style per condition slot
_SLOT_STYLES = {
    "visible_if": "",
    "hide_if": "dashed",
    "required_if": "dotted",
}

_OPERATOR_SYMBOLS = {
    ConditionOperator.EQUALS: "==",
    ConditionOperator.NOT_EQUALS: "!=",
    ConditionOperator.GREATER_THAN: ">",
    ConditionOperator.LESS_THAN: "<",
    ConditionOperator.GREATER_THAN_OR_EQUAL: ">=",
    ConditionOperator.LESS_THAN_OR_EQUAL: "<=",
    ConditionOperator.CONTAINS: "contains",
}


def _escape_dot_string(s: str) -> str:
    """Escape special characters for DOT labels."""
    if not s:
        return '""'
    # Escape backslashes first
    s = s.replace('\\', '\\\\')
    s = s.replace('"', '\\"')
    s = s.replace('\n', '\\n')
    return f'"{s}"'


def _escape_dot_id(identifier: str) -> str:
    """Escape/quote an identifier for DOT."""
    if not identifier:
        return '""'
    # Bare ids must start with a letter or underscore and hold only word characters
    if identifier[0].isdigit() or not identifier.replace('_', 'a').isalnum():
        return _escape_dot_string(identifier)
    return identifier


def _value_label(value) -> str:
    if isinstance(value, FunctionCall):
        args = ", ".join(str(a) for a in value.args)
        return f"{value.name}({args})"
    if isinstance(value, str):
        return f"'{value}'"
    return str(value)


def _condition_to_dot_label(condition: Condition) -> str:
    """Convert a condition to a readable DOT label."""
    op_str = _OPERATOR_SYMBOLS.get(condition.operator, condition.operator.value)
    return f"{condition.question_id} {op_str} {_value_label(condition.value)}"


def _node_line(question: Question, mode: DotMode) -> str:
    label = f"{question.id}\n{question.text}" if question.text else question.id
    if mode == DotMode.DETAILED:
        info = [question.type.value]
        if question.required:
            info.append("required")
        label = f"{label}\n({', '.join(info)})"

    attrs = [f"label={_escape_dot_string(label)}"]
    if question.required:
        attrs.append('style="filled,bold"')
        attrs.append("penwidth=2")
    if question.is_conditional:
        attrs.append("fillcolor=lightyellow")
    return f"  {_escape_dot_id(question.id)} [{', '.join(attrs)}];"


def generate_dot(questionnaire: Questionnaire, mode: DotMode = DotMode.SIMPLE) -> str:
    """
    Generate Graphviz DOT format for a questionnaire.

    Args:
        questionnaire: Questionnaire to visualize
        mode: Visualization mode (SIMPLE, DETAILED)

    Returns:
        String containing DOT graph definition
    """
    lines: List[str] = []

    # Header
    lines.append("digraph questionnaire {")
    lines.append("  rankdir=TB;")
    lines.append("  node [shape=box, style=filled, fillcolor=lightblue];")

    # =========================================================================
    # NODES
    # =========================================================================

    known = set()
    for question in questionnaire.questions:
        if question.id in known:
            continue
        known.add(question.id)
        lines.append(_node_line(question, mode))

    # Referenced ids that are not questions get a placeholder node
    missing = []
    for question in questionnaire.questions:
        for _, condition in question.condition_refs():
            ref = condition.question_id
            if ref not in known and ref not in missing:
                missing.append(ref)
    for ref in missing:
        lines.append(
            f"  {_escape_dot_id(ref)} [label={_escape_dot_string(ref + ' (missing)')}, "
            f"style=dashed, fillcolor=white];"
        )

    # =========================================================================
    # EDGES (CONDITION DEPENDENCIES)
    # =========================================================================

    for question in questionnaire.questions:
        for slot, condition in question.condition_refs():
            from_id = _escape_dot_id(condition.question_id)
            to_id = _escape_dot_id(question.id)

            attrs = []
            if _SLOT_STYLES[slot]:
                attrs.append(f"style={_SLOT_STYLES[slot]}")
            if mode == DotMode.DETAILED:
                label = _condition_to_dot_label(condition)
                if slot != "visible_if":
                    label = f"{slot}: {label}"
                # Shorten for readability
                if len(label) > 40:
                    label = label[:37] + "..."
                attrs.append(f"label={_escape_dot_string(label)}")

            edge_attr = f" [{', '.join(attrs)}]" if attrs else ""
            lines.append(f"  {from_id} -> {to_id}{edge_attr};")

    # Footer
    lines.append("}")

    return "\n".join(lines)


def save_dot_file(questionnaire: Questionnaire, filename: str, mode: DotMode = DotMode.SIMPLE) -> None:
    """
    Generate DOT and save to file.

    Args:
        questionnaire: Questionnaire to visualize
        filename: Output file path (.dot extension recommended)
        mode: Visualization mode
    """
    dot = generate_dot(questionnaire, mode=mode)
    with open(filename, 'w') as f:
        f.write(dot)


__all__ = ["DotMode", "generate_dot", "save_dot_file"]
