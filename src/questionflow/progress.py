"""Progress tracking for a questionnaire session."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class ProgressInfo:
    """
    Snapshot of session progress.

    Properties:
        current_question: 1-based position of the current question
        total_questions: Size of the current visible path
        answered_questions: Visible questions that have an answer
        percent_complete: round(answered / total * 100), 0 when total is 0
        is_completed: Whether the session reached Completed
    """

    current_question: int
    total_questions: int
    answered_questions: int
    percent_complete: int
    is_completed: bool


def _round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; progress rounds .5 upwards
    return int(math.floor(value + 0.5))


def calculate_progress(
    total_questions: int,
    current_index: int,
    answered_questions: int,
    is_completed: bool,
) -> ProgressInfo:
    percent = _round_half_up(answered_questions / total_questions * 100) if total_questions > 0 else 0
    return ProgressInfo(
        current_question=current_index + 1,
        total_questions=total_questions,
        answered_questions=answered_questions,
        percent_complete=percent,
        is_completed=is_completed,
    )


def is_complete(current_index: int, total_questions: int, all_required_answered: bool) -> bool:
    """
    Completion needs both the end of the visible path and every
    required question on that path answered.
    """
    return current_index >= total_questions and all_required_answered


__all__ = ["ProgressInfo", "calculate_progress", "is_complete"]
