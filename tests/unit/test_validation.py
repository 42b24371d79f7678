"""
Unit tests for KnowledgeValidationService.

Tests:
- Attempt numbering and attempt limits
- Concurrent submissions never share an attempt number
- Pre-sprint readiness and post-sprint progression gates
"""

import asyncio

import pytest

from sprintwise.assessment import KnowledgeValidationService
from sprintwise.core.errors import AttemptLimitExceeded, NotFoundError
from sprintwise.core.models import (
    Question,
    QuestionOption,
    QuestionType,
    Quiz,
    QuizType,
    Sprint,
)


def make_quiz(quiz_id="quiz-1", quiz_type=QuizType.POST_SPRINT, sprint_id="sprint-1", attempts=3):
    return Quiz(
        id=quiz_id,
        type=quiz_type,
        sprint_id=sprint_id,
        attempts_allowed=attempts,
        passing_score=80.0,
        questions=[
            Question(
                id="q1",
                type=QuestionType.MULTIPLE_CHOICE,
                skill_ids=["py"],
                options=[QuestionOption(id="a", is_correct=True), QuestionOption(id="b")],
            )
        ],
    )


@pytest.fixture
def service(repo):
    return KnowledgeValidationService(repo)


@pytest.fixture
def sprint(repo):
    return repo.add_sprint(Sprint(id="sprint-1", objective_id="obj-1", day_number=1, target_skill_ids=["py"]))


class TestSubmitQuizAttempt:
    """Tests for attempt submission."""

    @pytest.mark.asyncio
    async def test_unknown_quiz(self, service):
        with pytest.raises(NotFoundError):
            await service.submit_quiz_attempt("user-1", "missing", {})

    @pytest.mark.asyncio
    async def test_attempts_are_numbered(self, repo, service):
        repo.add_quiz(make_quiz())

        first = await service.submit_quiz_attempt("user-1", "quiz-1", {"q1": "b"})
        second = await service.submit_quiz_attempt("user-1", "quiz-1", {"q1": "a"}, elapsed_seconds=42)

        assert first.attempt.attempt_number == 1
        assert not first.result.passed
        assert first.attempts_remaining == 2
        assert second.attempt.attempt_number == 2
        assert second.attempt.passed
        assert second.attempt.elapsed_seconds == 42
        assert len(repo.attempts) == 2

    @pytest.mark.asyncio
    async def test_attempt_limit(self, repo, service):
        repo.add_quiz(make_quiz(attempts=1))
        await service.submit_quiz_attempt("user-1", "quiz-1", {"q1": "b"})

        with pytest.raises(AttemptLimitExceeded) as exc:
            await service.submit_quiz_attempt("user-1", "quiz-1", {"q1": "a"})

        assert exc.value.message == "No attempts remaining for this quiz"
        assert len(repo.attempts) == 1

    @pytest.mark.asyncio
    async def test_concurrent_submissions_get_distinct_numbers(self, repo, service):
        repo.add_quiz(make_quiz(attempts=5))

        results = await asyncio.gather(
            *(service.submit_quiz_attempt("user-1", "quiz-1", {"q1": "a"}) for _ in range(3))
        )

        numbers = sorted(r.attempt.attempt_number for r in results)
        assert numbers == [1, 2, 3]


class TestReadiness:
    """Tests for the pre-sprint gate."""

    @pytest.mark.asyncio
    async def test_no_quiz_can_start(self, service, sprint):
        check = await service.validate_pre_sprint_readiness("user-1", sprint.id)
        assert check.can_start

    @pytest.mark.asyncio
    async def test_quiz_not_taken(self, repo, service, sprint):
        repo.add_quiz(make_quiz("pre", QuizType.PRE_SPRINT))
        check = await service.validate_pre_sprint_readiness("user-1", sprint.id)
        assert not check.can_start
        assert check.required_quiz_id == "pre"

    @pytest.mark.asyncio
    async def test_failed_with_attempts_remaining(self, repo, service, sprint):
        repo.add_quiz(make_quiz("pre", QuizType.PRE_SPRINT))
        await service.submit_quiz_attempt("user-1", "pre", {"q1": "b"})

        check = await service.validate_pre_sprint_readiness("user-1", sprint.id)

        assert not check.can_start
        assert check.reason == (
            "You need to pass the readiness quiz (score: 0%, required: 80%). 2 attempts remaining."
        )

    @pytest.mark.asyncio
    async def test_attempts_exhausted_lists_prerequisites(self, repo, service, sprint, skills):
        repo.add_quiz(make_quiz("pre", QuizType.PRE_SPRINT, attempts=1))
        await service.submit_quiz_attempt("user-1", "pre", {"q1": "b"})

        check = await service.validate_pre_sprint_readiness("user-1", sprint.id)

        assert not check.can_start
        assert check.prerequisite_skills == ["Python"]

    @pytest.mark.asyncio
    async def test_passed(self, repo, service, sprint):
        repo.add_quiz(make_quiz("pre", QuizType.PRE_SPRINT))
        await service.submit_quiz_attempt("user-1", "pre", {"q1": "a"})
        check = await service.validate_pre_sprint_readiness("user-1", sprint.id)
        assert check.can_start


class TestSprintCompletion:
    """Tests for the post-sprint gate."""

    @pytest.mark.asyncio
    async def test_unknown_sprint(self, service):
        with pytest.raises(NotFoundError):
            await service.validate_sprint_completion("user-1", "missing")

    @pytest.mark.asyncio
    async def test_below_passing(self, repo, service, sprint):
        repo.add_quiz(make_quiz())
        await service.submit_quiz_attempt("user-1", "quiz-1", {"q1": "b"})

        check = await service.validate_sprint_completion("user-1", sprint.id)

        assert not check.can_progress
        assert check.reason == "Quiz score (0%) is below passing score (80%)."
        assert check.attempts_remaining == 2
        assert check.required_score == 80.0

    @pytest.mark.asyncio
    async def test_latest_attempt_wins(self, repo, service, sprint):
        repo.add_quiz(make_quiz())
        await service.submit_quiz_attempt("user-1", "quiz-1", {"q1": "b"})
        await service.submit_quiz_attempt("user-1", "quiz-1", {"q1": "a"})

        check = await service.validate_sprint_completion("user-1", sprint.id)

        assert check.can_progress
        assert check.quiz_score == 100.0
