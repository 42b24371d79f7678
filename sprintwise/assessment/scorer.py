"""
Quiz scoring.

Aggregates graded answers into an overall score, per-skill percentages,
weak-area detection and a deterministic set of recommendations.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sprintwise.assessment.grader import GradeOutcome, QuestionGrader
from sprintwise.core.models import GradedAnswer, Quiz

WEAK_AREA_THRESHOLD = 70.0
MAX_NAMED_WEAK_AREAS = 3


@dataclass
class QuizScore:
    """Result of scoring one quiz submission."""

    score: float  # 0-100
    passed: bool
    skill_scores: dict[str, float] = field(default_factory=dict)
    weak_areas: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    graded_answers: list[GradedAnswer] = field(default_factory=list)
    correct_count: int = 0
    total_questions: int = 0
    pending_review_question_ids: list[str] = field(default_factory=list)

    @property
    def needs_manual_review(self) -> bool:
        return bool(self.pending_review_question_ids)


class QuizScorer:
    """
    Score a quiz submission.

    score = 100 * earned_points / total_points (0 when there are no points).
    A question tagging several skills counts toward each of them.
    """

    def __init__(
        self,
        grader: QuestionGrader | None = None,
        weak_area_threshold: float = WEAK_AREA_THRESHOLD,
    ):
        self.grader = grader or QuestionGrader()
        self.weak_area_threshold = weak_area_threshold

    def score(self, quiz: Quiz, answers: Mapping[str, Any]) -> QuizScore:
        """
        Grade every question in ``quiz`` against ``answers``.

        Args:
            quiz: Quiz with its ordered questions
            answers: question_id -> submitted answer; missing ids grade incorrect

        Returns:
            QuizScore with graded answers in question order
        """
        total_points = 0.0
        earned_points = 0.0
        correct_count = 0
        skill_tally: dict[str, list[int]] = {}  # skill_id -> [correct, total]
        graded: list[GradedAnswer] = []
        pending: list[str] = []

        for question in quiz.questions:
            total_points += question.points
            answer = answers.get(question.id)
            outcome = self.grader.grade(question, answer)
            is_correct = outcome.is_correct

            if is_correct:
                correct_count += 1
                earned_points += question.points
            if outcome is GradeOutcome.NEEDS_MANUAL_REVIEW:
                pending.append(question.id)

            graded.append(
                GradedAnswer(
                    question_id=question.id,
                    answer=answer,
                    is_correct=is_correct,
                    points_earned=question.points if is_correct else 0.0,
                    needs_manual_review=outcome is GradeOutcome.NEEDS_MANUAL_REVIEW,
                )
            )

            for skill_id in dict.fromkeys(question.skill_ids):
                tally = skill_tally.setdefault(skill_id, [0, 0])
                tally[1] += 1
                if is_correct:
                    tally[0] += 1

        score = 100.0 * earned_points / total_points if total_points > 0 else 0.0
        score = min(100.0, max(0.0, score))
        passed = score >= quiz.passing_score

        skill_scores = {
            skill_id: 100.0 * correct / total for skill_id, (correct, total) in skill_tally.items()
        }
        weak_areas = [
            skill_id for skill_id, pct in skill_scores.items() if pct < self.weak_area_threshold
        ]

        return QuizScore(
            score=score,
            passed=passed,
            skill_scores=skill_scores,
            weak_areas=weak_areas,
            recommendations=self.build_recommendations(score, passed, weak_areas),
            graded_answers=graded,
            correct_count=correct_count,
            total_questions=len(quiz.questions),
            pending_review_question_ids=pending,
        )

    @staticmethod
    def build_recommendations(score: float, passed: bool, weak_areas: list[str]) -> list[str]:
        """Rule table keyed on (passed, score bucket, weak areas present)."""
        recommendations: list[str] = []

        if passed:
            if score >= 95:
                recommendations.append("Excellent work! You have mastered these concepts.")
            elif score >= 85:
                recommendations.append("Great job! You have a solid understanding.")
            else:
                recommendations.append("Good work! You passed, but there is room for improvement.")
        else:
            recommendations.append("Review the material and try again.")

        if weak_areas:
            named = ", ".join(weak_areas[:MAX_NAMED_WEAK_AREAS])
            recommendations.append(f"Focus on improving: {named}")
            recommendations.append("Practice more exercises in these areas.")

        return recommendations
