"""
Integration tests for SqlAlchemyProgressRepository.

Runs against an in-memory SQLite database through aiosqlite, so no
external server is needed.
"""

import pytest
import pytest_asyncio

from sprintwise.config import Settings
from sprintwise.core.errors import DuplicateSprintError, NotFoundError
from sprintwise.core.models import (
    LearnerProfile,
    Milestone,
    Objective,
    Question,
    QuestionOption,
    QuestionType,
    Quiz,
    QuizType,
    ReviewSchedule,
    Skill,
    SkillStatus,
    Sprint,
    SprintStatus,
    UserSkill,
)
from sprintwise.db import (
    SqlAlchemyProgressRepository,
    create_engine_for,
    create_session_factory,
    init_db,
)
from sprintwise.engine import build_engine
from sprintwise.planning import FallbackPlanner


@pytest_asyncio.fixture
async def session_factory():
    engine = create_engine_for("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def repository(session_factory):
    repo = SqlAlchemyProgressRepository(session_factory)
    for skill in (Skill(id="py", name="Python"), Skill(id="sql", name="SQL")):
        await repo.create_skill(skill)
    await repo.create_learner_profile(
        LearnerProfile(id="profile-1", user_id="user-1", gaps=["joins"], hours_per_week=7.0)
    )
    await repo.create_objective(
        Objective(
            id="obj-1",
            user_id="user-1",
            title="Data engineering",
            required_skill_ids=["py", "sql"],
            estimated_total_days=20,
        )
    )
    return repo


class TestObjectives:
    """Objective, profile and milestone persistence."""

    @pytest.mark.asyncio
    async def test_round_trip(self, repository):
        objective = await repository.get_objective("obj-1")
        assert objective.required_skill_ids == ["py", "sql"]
        assert objective.current_difficulty == 5

        objective.current_difficulty = 7
        objective.learning_velocity = 1.2
        await repository.update_objective(objective)

        reloaded = await repository.get_objective("obj-1")
        assert reloaded.current_difficulty == 7
        assert reloaded.learning_velocity == pytest.approx(1.2)

    @pytest.mark.asyncio
    async def test_update_missing_objective(self, repository):
        with pytest.raises(NotFoundError):
            await repository.update_objective(Objective(id="nope", user_id="u", title="x"))

    @pytest.mark.asyncio
    async def test_profile_by_user(self, repository):
        profile = await repository.get_learner_profile("user-1")
        assert profile.gaps == ["joins"]
        assert await repository.get_learner_profile("someone-else") is None

    @pytest.mark.asyncio
    async def test_next_incomplete_milestone(self, repository):
        await repository.create_milestone(
            Milestone(id="m2", objective_id="obj-1", title="Later", target_day=14)
        )
        await repository.create_milestone(
            Milestone(id="m1", objective_id="obj-1", title="First", target_day=7, is_completed=True)
        )
        milestone = await repository.get_next_incomplete_milestone("obj-1")
        assert milestone.id == "m2"


class TestSprints:
    """Sprint recording, linking and queries."""

    @pytest.mark.asyncio
    async def test_record_links_and_counts(self, repository):
        day1 = await repository.record_generated_sprint(Sprint(objective_id="obj-1", day_number=1))
        day3 = await repository.record_generated_sprint(Sprint(objective_id="obj-1", day_number=3))
        day2 = await repository.record_generated_sprint(Sprint(objective_id="obj-1", day_number=2))

        assert (await repository.get_sprint(day1.id)).next_sprint_id == day2.id
        assert day2.next_sprint_id == day3.id
        assert (await repository.get_sprint(day3.id)).next_sprint_id is None

        objective = await repository.get_objective("obj-1")
        assert objective.current_day == 3
        assert objective.total_sprints_generated == 3

    @pytest.mark.asyncio
    async def test_duplicate_day_rejected(self, repository):
        first = await repository.record_generated_sprint(Sprint(objective_id="obj-1", day_number=1))

        with pytest.raises(DuplicateSprintError) as exc:
            await repository.record_generated_sprint(Sprint(objective_id="obj-1", day_number=1))

        assert exc.value.day_number == 1
        assert (await repository.get_sprint_by_day("obj-1", 1)).id == first.id
        objective = await repository.get_objective("obj-1")
        assert objective.total_sprints_generated == 1

    @pytest.mark.asyncio
    async def test_record_for_missing_objective(self, repository):
        with pytest.raises(NotFoundError):
            await repository.record_generated_sprint(Sprint(objective_id="nope", day_number=1))

    @pytest.mark.asyncio
    async def test_recent_scored_sprints(self, repository):
        for day, score in ((1, 70.0), (2, None), (3, 90.0)):
            await repository.create_sprint(
                Sprint(
                    objective_id="obj-1",
                    day_number=day,
                    status=SprintStatus.COMPLETED if score is not None else SprintStatus.PLANNED,
                    score=score,
                    plan={"micro_tasks": [{"completion_criteria": [f"Deliverable {day}"]}]},
                )
            )

        scored = await repository.list_recent_scored_sprints("obj-1", 5)
        recent = await repository.list_recent_sprints("obj-1", 2)
        last = await repository.get_last_sprint("obj-1")

        assert [s.score for s in scored] == [90.0, 70.0]
        assert [s.day_number for s in recent] == [3, 2]
        assert last.deliverables == ["Deliverable 3"]


class TestMastery:
    """User skills and review schedules."""

    @pytest.mark.asyncio
    async def test_user_skill_upsert(self, repository):
        skill = UserSkill(user_id="user-1", skill_id="py", level=30.0, status=SkillStatus.DEVELOPING)
        await repository.save_user_skill(skill)
        skill.level = 90.0
        skill.status = SkillStatus.MASTERED
        skill.level_history = [30.0, 90.0]
        await repository.save_user_skill(skill)

        stored = await repository.get_user_skill("user-1", "py")
        assert stored.status is SkillStatus.MASTERED
        assert stored.level_history == [30.0, 90.0]
        assert [us.skill_id for us in await repository.list_user_skills("user-1", ["sql"])] == []

    @pytest.mark.asyncio
    async def test_review_schedules(self, repository):
        await repository.save_review_schedule(
            ReviewSchedule(user_id="user-1", skill_id="sql", next_review_due_day=9)
        )
        await repository.save_review_schedule(
            ReviewSchedule(user_id="user-1", skill_id="py", next_review_due_day=4)
        )
        schedules = await repository.list_review_schedules("user-1")
        assert [s.skill_id for s in schedules] == ["py", "sql"]


class TestQuizzes:
    """Quiz and attempt persistence."""

    @pytest.mark.asyncio
    async def test_quiz_round_trip(self, repository):
        sprint = await repository.record_generated_sprint(Sprint(objective_id="obj-1", day_number=1))
        await repository.create_quiz(
            Quiz(
                id="quiz-1",
                type=QuizType.POST_SPRINT,
                sprint_id=sprint.id,
                questions=[
                    Question(
                        id="quiz-1-q1",
                        type=QuestionType.MULTIPLE_SELECT,
                        skill_ids=["sql"],
                        options=[
                            QuestionOption(id="a", is_correct=True),
                            QuestionOption(id="b", is_correct=True),
                        ],
                    ),
                    Question(id="quiz-1-q2", type=QuestionType.CODE_OUTPUT, expected_output="42"),
                ],
            )
        )

        quizzes = await repository.list_sprint_quizzes(sprint.id)

        assert [q.id for q in quizzes] == ["quiz-1"]
        questions = quizzes[0].questions
        assert [q.id for q in questions] == ["quiz-1-q1", "quiz-1-q2"]
        assert questions[0].correct_option_ids == ["a", "b"]
        assert questions[1].expected_output == "42"


class TestEngineOnSqlite:
    """Completion flow through the SQLAlchemy repository."""

    @pytest.mark.asyncio
    async def test_complete_sprint(self, session_factory, repository):
        engine = build_engine(
            settings=Settings(_env_file=None),
            session_factory=session_factory,
            planner=FallbackPlanner(),
        )
        sprint = await engine.sequencer.generate_next_sprint("obj-1", "user-1")

        report = await engine.complete_sprint("user-1", sprint.id, score=95.0)

        assert report.next_sprint.day_number == 2
        objective = await repository.get_objective("obj-1")
        assert objective.completed_days == 1
        assert objective.current_day == 2
        assert objective.current_difficulty == 6
        assert (await repository.get_sprint(sprint.id)).next_sprint_id == report.next_sprint.id
        assert await repository.get_review_schedule("user-1", "py") is not None

        next_sprint = await repository.get_sprint(report.next_sprint.id)
        assert next_sprint.difficulty == "intermediate"
        assert next_sprint.adapted_from == "increased"
        assert next_sprint.adaptation_reason.startswith("Increased complexity")
