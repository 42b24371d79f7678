"""
Unit tests for ProgressionEngine.complete_sprint.

Exercises the full completion flow against the in-memory repository:
grading, skill updates, review scheduling, pacing and next-sprint
generation.
"""

import pytest
import pytest_asyncio

from sprintwise.core.errors import InvalidRequestError, NotFoundError
from sprintwise.core.events import EventType
from sprintwise.core.models import (
    GenerationMode,
    Question,
    QuestionOption,
    QuestionType,
    Quiz,
    QuizType,
    ReviewSchedule,
    SkillStatus,
    UserSkill,
)
from sprintwise.engine import build_engine
from sprintwise.learning import PacingAction


@pytest.fixture
def engine(repo, settings, planner, notifier):
    return build_engine(settings=settings, planner=planner, notifier=notifier, repository=repo)


@pytest_asyncio.fixture
async def first_sprint(engine, objective, profile):
    return await engine.sequencer.generate_next_sprint(objective.id, "user-1")


class TestCompleteSprint:
    """Tests for the completion flow."""

    @pytest.mark.asyncio
    async def test_scored_completion_generates_next_day(self, repo, engine, objective, first_sprint):
        report = await engine.complete_sprint("user-1", first_sprint.id, score=92.0, reflection="Went well")

        stored = repo.sprints[first_sprint.id]
        assert stored.status.value == "completed"
        assert stored.score == 92.0
        assert stored.reflection == "Went well"
        assert repo.objectives[objective.id].completed_days == 1

        assert [u.skill_id for u in report.skill_updates] == ["py"]
        assert report.skill_updates[0].first_assessment
        assert ("user-1", "py") in repo.schedules
        assert not report.review_decision.should_insert
        assert report.review_sprint is None

        assert report.adaptation.adjustment_type is PacingAction.INCREASE
        assert repo.objectives[objective.id].current_difficulty == 6

        assert report.next_sprint.day_number == 2
        assert report.buffer_sprints == []
        # One sprint at 92 counts as consistently high
        assert report.difficulty_adjustment.adjustment_type == "increased"
        assert report.next_sprint.difficulty == "intermediate"
        assert repo.sprints[report.next_sprint.id].adapted_from == "increased"

    @pytest.mark.asyncio
    async def test_next_sprint_sees_reflection(self, engine, planner, first_sprint):
        await engine.complete_sprint("user-1", first_sprint.id, score=80.0, reflection="Need more SQL")

        context = planner.contexts[-1]
        assert context.day_number == 2
        assert context.previous_sprints[-1].reflection == "Need more SQL"

    @pytest.mark.asyncio
    async def test_quiz_completion(self, repo, engine, first_sprint):
        repo.add_quiz(
            Quiz(
                id="post-1",
                type=QuizType.POST_SPRINT,
                sprint_id=first_sprint.id,
                questions=[
                    Question(
                        id="q1",
                        type=QuestionType.MULTIPLE_CHOICE,
                        skill_ids=["py", "sql"],
                        options=[QuestionOption(id="a", is_correct=True), QuestionOption(id="b")],
                    )
                ],
            )
        )

        report = await engine.complete_sprint(
            "user-1", first_sprint.id, quiz_id="post-1", answers={"q1": "a"}, elapsed_seconds=120
        )

        assert report.quiz_result.score == 100.0
        assert repo.sprints[first_sprint.id].score == 100.0
        assert sorted(u.skill_id for u in report.skill_updates) == ["py", "sql"]
        assert len(repo.attempts) == 1

    @pytest.mark.asyncio
    async def test_declining_skill_inserts_review_sprint(self, repo, engine, notifier, first_sprint):
        repo.user_skills[("user-1", "py")] = UserSkill(
            user_id="user-1", skill_id="py", level=68.0, status=SkillStatus.PROFICIENT,
            practice_count=2, success_rate=0.8, level_history=[80.0, 68.0],
        )
        repo.schedules[("user-1", "py")] = ReviewSchedule(
            user_id="user-1", skill_id="py", next_review_due_day=1
        )

        report = await engine.complete_sprint("user-1", first_sprint.id, score=20.0)

        assert report.review_decision.should_insert
        assert report.review_decision.skills_to_review == ["py"]
        assert report.review_sprint.is_review_sprint
        assert report.review_sprint.day_number == 2
        assert report.next_sprint.day_number == 3
        assert report.adaptation.adjustment_type is PacingAction.DECREASE
        assert report.difficulty_adjustment.adjustment_type == "maintained"
        assert report.next_sprint.difficulty == "beginner"
        # Failed review resets the schedule
        assert repo.schedules[("user-1", "py")].interval_days == 1
        assert notifier.of_type(EventType.REVIEW_NEEDED)

    @pytest.mark.asyncio
    async def test_second_completion_does_not_recount(self, repo, engine, objective, first_sprint):
        await engine.complete_sprint("user-1", first_sprint.id, score=80.0)
        await engine.complete_sprint("user-1", first_sprint.id, score=85.0)
        assert repo.objectives[objective.id].completed_days == 1

    @pytest.mark.asyncio
    async def test_manual_mode_skips_generation(self, repo, engine, objective, first_sprint):
        repo.objectives[objective.id].sprint_generation_mode = GenerationMode.MANUAL

        report = await engine.complete_sprint("user-1", first_sprint.id, score=75.0)

        assert report.next_sprint is None
        assert report.buffer_sprints == []

    @pytest.mark.asyncio
    async def test_generation_failure_does_not_fail_completion(
        self, repo, settings, notifier, make_planner, objective, profile
    ):
        engine = build_engine(
            settings=settings,
            planner=make_planner(fail_on_days=[2]),
            notifier=notifier,
            repository=repo,
        )
        sprint = await engine.sequencer.generate_next_sprint(objective.id, "user-1")

        report = await engine.complete_sprint("user-1", sprint.id, score=75.0)

        assert report.next_sprint is None
        assert report.buffer_sprints == []
        assert repo.sprints[sprint.id].score == 75.0

    @pytest.mark.asyncio
    async def test_requires_quiz_or_score(self, repo, engine, first_sprint):
        with pytest.raises(InvalidRequestError):
            await engine.complete_sprint("user-1", first_sprint.id)
        assert not repo.sprints[first_sprint.id].is_completed

    @pytest.mark.asyncio
    async def test_other_users_sprint(self, engine, first_sprint):
        with pytest.raises(NotFoundError):
            await engine.complete_sprint("intruder", first_sprint.id, score=90.0)

    @pytest.mark.asyncio
    async def test_unknown_sprint(self, engine):
        with pytest.raises(NotFoundError):
            await engine.complete_sprint("user-1", "missing", score=90.0)
