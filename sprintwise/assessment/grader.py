"""
Question grading.

Grades one answer against one question. Option-based and code-output
questions are graded automatically; free-text types are reported as
needing manual review rather than silently marked wrong.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from enum import Enum
from typing import Any

from sprintwise.core.models import Question, QuestionType

_WHITESPACE = re.compile(r"\s+")


class GradeOutcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    NEEDS_MANUAL_REVIEW = "needs_manual_review"

    @property
    def is_correct(self) -> bool:
        return self is GradeOutcome.CORRECT


MANUAL_REVIEW_TYPES = frozenset({QuestionType.CODE_COMPLETION, QuestionType.SHORT_ANSWER})


def normalize_output(text: Any) -> str:
    """Collapse every whitespace run to one space and trim."""
    return _WHITESPACE.sub(" ", str(text)).strip()


class QuestionGrader:
    """
    Pure grader: ``grade(question, answer) -> GradeOutcome``.

    Rules:
    - multiple_choice / true_false: answer equals the single correct option id
    - multiple_select: exact set equality, order-independent, no partial credit
    - code_output: whitespace-normalized string equality
    - code_completion / short_answer: NEEDS_MANUAL_REVIEW
    """

    def grade(self, question: Question, user_answer: Any) -> GradeOutcome:
        if question.type in MANUAL_REVIEW_TYPES:
            return GradeOutcome.NEEDS_MANUAL_REVIEW

        if user_answer is None:
            return GradeOutcome.INCORRECT

        if question.type in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE):
            correct = self._grade_single_option(question, user_answer)
        elif question.type == QuestionType.MULTIPLE_SELECT:
            correct = self._grade_multiple_select(question, user_answer)
        elif question.type == QuestionType.CODE_OUTPUT:
            correct = self._grade_code_output(question, user_answer)
        else:
            correct = False

        return GradeOutcome.CORRECT if correct else GradeOutcome.INCORRECT

    def _grade_single_option(self, question: Question, user_answer: Any) -> bool:
        correct_ids = question.correct_option_ids
        if len(correct_ids) != 1:
            # Malformed question: zero or several correct options
            return False
        return user_answer == correct_ids[0]

    def _grade_multiple_select(self, question: Question, user_answer: Any) -> bool:
        if isinstance(user_answer, (str, bytes)) or not isinstance(user_answer, Iterable):
            return False
        correct = set(question.correct_option_ids)
        return bool(correct) and set(user_answer) == correct

    def _grade_code_output(self, question: Question, user_answer: Any) -> bool:
        if question.expected_output is None:
            return False
        return normalize_output(user_answer) == normalize_output(question.expected_output)
