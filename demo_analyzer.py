"""
Demo: Run the analyzer on the example questionnaire, print the report and
export the questionnaire as YAML plus Graphviz DOT diagrams.
"""

from questionflow.analyzer import analyze_questionnaire
from questionflow.backends import DotMode, save_dot_file
from questionflow.config import load_settings
from questionflow.examples import build_example_questionnaire, build_example_rules
from questionflow.logging_setup import configure_logging
from questionflow.serialization import questionnaire_to_yaml


def print_report(report):
    """Pretty-print a QuestionnaireReport."""
    print()
    print("=" * 70)
    print(f"QUESTIONNAIRE ANALYSIS REPORT: {report.questionnaire_id}")
    print("=" * 70)
    print()

    print("📊 BASIC METRICS")
    print(f"  Total Questions:       {report.total_questions}")
    print(f"  Required Questions:    {report.required_questions}")
    print(f"  Conditional Questions: {report.conditional_questions}")
    print(f"  Conditionally Required: {report.conditionally_required}")
    print(f"  Cross-question Rules:  {report.total_rules}")
    print()

    print("🧩 QUESTION TYPES")
    for qtype, count in sorted(report.question_types.items()):
        print(f"  {qtype}: {count}")
    print()

    print("🔗 VISIBILITY DEPENDENCIES")
    if report.dependents:
        for source, dependents in sorted(report.dependents.items()):
            print(f"  {source} -> {', '.join(dependents)}")
    else:
        print("  None")
    print(f"  Has Cycles:            {'YES' if report.has_cycles else 'NO'}")
    if report.has_cycles and report.cycle_example:
        print(f"    Example: {' -> '.join(report.cycle_example)}")
    print()

    if report.warnings:
        print("⚠️  WARNINGS")
        for i, warning in enumerate(report.warnings, 1):
            print(f"  {i}. {warning}")
    else:
        print("✨ NO WARNINGS - Questionnaire looks clean!")
    print()


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_level)

    questionnaire = build_example_questionnaire()
    report = analyze_questionnaire(questionnaire, build_example_rules())
    print_report(report)

    with open("example_questionnaire.yaml", "w") as f:
        f.write(questionnaire_to_yaml(questionnaire))
    print("✅ Questionnaire exported to example_questionnaire.yaml")

    for mode in (DotMode.SIMPLE, DotMode.DETAILED):
        filename = f"questionnaire_{mode.value}.dot"
        save_dot_file(questionnaire, filename, mode=mode)
        print(f"✅ {mode.value.upper()} diagram saved to {filename}")
    print("   Render with: dot -Tpng questionnaire_detailed.dot -o questionnaire.png")
