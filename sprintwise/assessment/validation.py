"""
Knowledge validation: quiz attempt submission and sprint gating.

Pre-sprint quizzes gate starting a sprint; post-sprint quizzes gate
progressing past it. Attempt numbers are allocated under a per
(quiz, user) lock so concurrent submissions never share a number.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from sprintwise.assessment.scorer import QuizScore, QuizScorer
from sprintwise.core.errors import AttemptLimitExceeded, NotFoundError
from sprintwise.core.locks import KeyedLock
from sprintwise.core.models import Quiz, QuizAttempt, QuizType
from sprintwise.core.repository import ProgressRepository


@dataclass
class AttemptResult:
    """Persisted attempt plus the full scoring breakdown."""

    attempt: QuizAttempt
    result: QuizScore
    attempts_remaining: int = 0


@dataclass
class ReadinessCheck:
    can_start: bool
    reason: str | None = None
    required_quiz_id: str | None = None
    prerequisite_skills: list[str] = field(default_factory=list)


@dataclass
class ProgressionCheck:
    can_progress: bool
    required_score: float = 0.0
    reason: str | None = None
    quiz_score: float | None = None
    attempts_remaining: int | None = None


class KnowledgeValidationService:
    """Submit quiz attempts and answer sprint gating questions."""

    def __init__(self, repository: ProgressRepository, scorer: QuizScorer | None = None):
        self.repository = repository
        self.scorer = scorer or QuizScorer()
        self._locks = KeyedLock()

    async def submit_quiz_attempt(
        self,
        user_id: str,
        quiz_id: str,
        answers: Mapping[str, Any],
        elapsed_seconds: float = 0.0,
    ) -> AttemptResult:
        """
        Grade and persist one attempt.

        Args:
            user_id: Learner submitting the attempt
            quiz_id: Quiz being attempted
            answers: question_id -> answer
            elapsed_seconds: Time the learner spent on the quiz

        Returns:
            AttemptResult with the stored attempt and its score breakdown

        Raises:
            NotFoundError: quiz does not exist
            AttemptLimitExceeded: every allowed attempt is used
        """
        quiz = await self.repository.get_quiz(quiz_id)
        if quiz is None:
            raise NotFoundError(f"Quiz {quiz_id} not found", details={"quiz_id": quiz_id})

        async with self._locks.hold((quiz_id, user_id)):
            previous = await self.repository.list_quiz_attempts(quiz_id, user_id)
            attempt_number = max((a.attempt_number for a in previous), default=0) + 1
            if attempt_number > quiz.attempts_allowed:
                raise AttemptLimitExceeded(
                    "No attempts remaining for this quiz",
                    details={"quiz_id": quiz_id, "attempts_allowed": quiz.attempts_allowed},
                )

            result = self.scorer.score(quiz, answers)
            attempt = QuizAttempt(
                quiz_id=quiz_id,
                user_id=user_id,
                attempt_number=attempt_number,
                score=result.score,
                passed=result.passed,
                skill_scores=dict(result.skill_scores),
                elapsed_seconds=elapsed_seconds,
                graded_answers=list(result.graded_answers),
                completed_at=datetime.now(timezone.utc),
            )
            await self.repository.save_quiz_attempt(attempt)

        logger.info(
            f"Quiz {quiz_id} attempt {attempt_number} by {user_id}: "
            f"score={result.score:.1f} passed={result.passed}"
        )
        return AttemptResult(
            attempt=attempt,
            result=result,
            attempts_remaining=quiz.attempts_allowed - attempt_number,
        )

    async def validate_pre_sprint_readiness(self, user_id: str, sprint_id: str) -> ReadinessCheck:
        """Can the learner start ``sprint_id``? Requires a passed pre-sprint quiz if one exists."""
        sprint = await self.repository.get_sprint(sprint_id)
        if sprint is None:
            raise NotFoundError(f"Sprint {sprint_id} not found", details={"sprint_id": sprint_id})

        quiz = await self._find_sprint_quiz(sprint_id, QuizType.PRE_SPRINT)
        if quiz is None:
            return ReadinessCheck(can_start=True)

        latest = await self._latest_attempt(quiz, user_id)
        if latest is None:
            return ReadinessCheck(
                can_start=False,
                reason="You must complete the readiness quiz before starting this sprint.",
                required_quiz_id=quiz.id,
            )

        if latest.passed:
            return ReadinessCheck(can_start=True)

        remaining = quiz.attempts_allowed - latest.attempt_number
        if remaining > 0:
            return ReadinessCheck(
                can_start=False,
                reason=(
                    f"You need to pass the readiness quiz (score: {latest.score:g}%, "
                    f"required: {quiz.passing_score:g}%). {remaining} attempts remaining."
                ),
                required_quiz_id=quiz.id,
            )

        skills = await self.repository.get_skills(sprint.target_skill_ids)
        return ReadinessCheck(
            can_start=False,
            reason=(
                "You have used all quiz attempts. "
                "Please review the prerequisite skills and try again later."
            ),
            prerequisite_skills=[skill.name for skill in skills],
        )

    async def validate_sprint_completion(self, user_id: str, sprint_id: str) -> ProgressionCheck:
        """Can the learner move past ``sprint_id``? Requires a passed post-sprint quiz if one exists."""
        sprint = await self.repository.get_sprint(sprint_id)
        if sprint is None:
            raise NotFoundError(f"Sprint {sprint_id} not found", details={"sprint_id": sprint_id})

        quiz = await self._find_sprint_quiz(sprint_id, QuizType.POST_SPRINT)
        if quiz is None:
            return ProgressionCheck(can_progress=True)

        latest = await self._latest_attempt(quiz, user_id)
        if latest is None:
            return ProgressionCheck(
                can_progress=False,
                reason="You must complete the validation quiz before progressing.",
                required_score=quiz.passing_score,
            )

        if not latest.passed:
            return ProgressionCheck(
                can_progress=False,
                reason=(
                    f"Quiz score ({latest.score:g}%) is below passing score "
                    f"({quiz.passing_score:g}%)."
                ),
                quiz_score=latest.score,
                required_score=quiz.passing_score,
                attempts_remaining=max(0, quiz.attempts_allowed - latest.attempt_number),
            )

        return ProgressionCheck(
            can_progress=True,
            quiz_score=latest.score,
            required_score=quiz.passing_score,
        )

    async def _find_sprint_quiz(self, sprint_id: str, quiz_type: QuizType) -> Quiz | None:
        quizzes = await self.repository.list_sprint_quizzes(sprint_id)
        return next((quiz for quiz in quizzes if quiz.type == quiz_type), None)

    async def _latest_attempt(self, quiz: Quiz, user_id: str) -> QuizAttempt | None:
        attempts = await self.repository.list_quiz_attempts(quiz.id, user_id)
        return max(attempts, key=lambda a: a.attempt_number, default=None)
