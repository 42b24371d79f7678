"""
SQLAlchemy implementation of the ProgressRepository protocol.

Every call runs in its own transactional scope. Driver errors surface as
PersistenceError; a duplicate (objective_id, day_number) insert surfaces
as DuplicateSprintError.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sprintwise.core.errors import (
    DuplicateSprintError,
    NotFoundError,
    PersistenceError,
    ProgressionError,
)
from sprintwise.core.models import (
    LearnerProfile,
    Milestone,
    Objective,
    Quiz,
    QuizAttempt,
    ReviewSchedule,
    Skill,
    Sprint,
    SprintStatus,
    UserSkill,
)
from sprintwise.db.database import async_session_scope
from sprintwise.db.models import (
    LearnerProfileRow,
    MilestoneRow,
    ObjectiveRow,
    QuizAttemptRow,
    QuizRow,
    ReviewScheduleRow,
    SkillRow,
    SprintRow,
    UserSkillRow,
)


class SqlAlchemyProgressRepository:
    """Async repository backed by an ``async_sessionmaker``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _scope(self) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with async_session_scope(self.session_factory) as session:
                yield session
        except ProgressionError:
            raise
        except SQLAlchemyError as e:
            raise PersistenceError(f"Database error: {e}") from e

    # =========================================================================
    # Seeding (setup and CLI; not part of the engine contract)
    # =========================================================================

    async def create_skill(self, skill: Skill) -> None:
        async with self._scope() as session:
            session.add(SkillRow.from_domain(skill))

    async def create_learner_profile(self, profile: LearnerProfile) -> None:
        async with self._scope() as session:
            session.add(LearnerProfileRow.from_domain(profile))

    async def create_objective(self, objective: Objective) -> None:
        async with self._scope() as session:
            session.add(ObjectiveRow.from_domain(objective))

    async def create_milestone(self, milestone: Milestone) -> None:
        async with self._scope() as session:
            session.add(MilestoneRow.from_domain(milestone))

    async def create_quiz(self, quiz: Quiz) -> None:
        async with self._scope() as session:
            session.add(QuizRow.from_domain(quiz))

    async def create_sprint(self, sprint: Sprint) -> None:
        """Insert a sprint as-is, without linking or counter updates."""
        async with self._scope() as session:
            session.add(SprintRow.from_domain(sprint))
            try:
                await session.flush()
            except IntegrityError as e:
                raise DuplicateSprintError(sprint.objective_id, sprint.day_number) from e

    # =========================================================================
    # Objectives + profiles
    # =========================================================================

    async def get_objective(self, objective_id: str) -> Objective | None:
        async with self._scope() as session:
            row = await session.get(ObjectiveRow, objective_id)
            return row.to_domain() if row else None

    async def update_objective(self, objective: Objective) -> None:
        async with self._scope() as session:
            row = await session.get(ObjectiveRow, objective.id)
            if row is None:
                raise NotFoundError(
                    f"Objective {objective.id} not found", details={"objective_id": objective.id}
                )
            row.apply(objective)

    async def get_learner_profile(self, user_id: str) -> LearnerProfile | None:
        async with self._scope() as session:
            result = await session.execute(
                select(LearnerProfileRow).where(LearnerProfileRow.user_id == user_id)
            )
            row = result.scalar_one_or_none()
            return row.to_domain() if row else None

    async def get_next_incomplete_milestone(self, objective_id: str) -> Milestone | None:
        async with self._scope() as session:
            result = await session.execute(
                select(MilestoneRow)
                .where(
                    MilestoneRow.objective_id == objective_id,
                    MilestoneRow.is_completed.is_(False),
                )
                .order_by(MilestoneRow.target_day)
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return row.to_domain() if row else None

    # =========================================================================
    # Skills
    # =========================================================================

    async def get_skills(self, skill_ids: Sequence[str]) -> list[Skill]:
        if not skill_ids:
            return []
        async with self._scope() as session:
            result = await session.execute(select(SkillRow).where(SkillRow.id.in_(list(skill_ids))))
            rows = {row.id: row for row in result.scalars()}
        return [rows[sid].to_domain() for sid in dict.fromkeys(skill_ids) if sid in rows]

    async def get_user_skill(self, user_id: str, skill_id: str) -> UserSkill | None:
        async with self._scope() as session:
            row = await session.get(UserSkillRow, (user_id, skill_id))
            return row.to_domain() if row else None

    async def list_user_skills(
        self, user_id: str, skill_ids: Sequence[str] | None = None
    ) -> list[UserSkill]:
        query = select(UserSkillRow).where(UserSkillRow.user_id == user_id)
        if skill_ids is not None:
            query = query.where(UserSkillRow.skill_id.in_(list(skill_ids)))
        async with self._scope() as session:
            result = await session.execute(query.order_by(UserSkillRow.skill_id))
            return [row.to_domain() for row in result.scalars()]

    async def save_user_skill(self, user_skill: UserSkill) -> None:
        async with self._scope() as session:
            row = await session.get(UserSkillRow, (user_skill.user_id, user_skill.skill_id))
            if row is None:
                row = UserSkillRow(user_id=user_skill.user_id, skill_id=user_skill.skill_id)
                session.add(row)
            row.apply(user_skill)

    # =========================================================================
    # Review schedules
    # =========================================================================

    async def get_review_schedule(self, user_id: str, skill_id: str) -> ReviewSchedule | None:
        async with self._scope() as session:
            row = await session.get(ReviewScheduleRow, (user_id, skill_id))
            return row.to_domain() if row else None

    async def list_review_schedules(self, user_id: str) -> list[ReviewSchedule]:
        async with self._scope() as session:
            result = await session.execute(
                select(ReviewScheduleRow)
                .where(ReviewScheduleRow.user_id == user_id)
                .order_by(ReviewScheduleRow.next_review_due_day)
            )
            return [row.to_domain() for row in result.scalars()]

    async def save_review_schedule(self, schedule: ReviewSchedule) -> None:
        async with self._scope() as session:
            row = await session.get(ReviewScheduleRow, (schedule.user_id, schedule.skill_id))
            if row is None:
                row = ReviewScheduleRow(user_id=schedule.user_id, skill_id=schedule.skill_id)
                session.add(row)
            row.apply(schedule)

    # =========================================================================
    # Quizzes
    # =========================================================================

    async def get_quiz(self, quiz_id: str) -> Quiz | None:
        async with self._scope() as session:
            row = await session.get(QuizRow, quiz_id)
            return row.to_domain() if row else None

    async def list_sprint_quizzes(self, sprint_id: str) -> list[Quiz]:
        async with self._scope() as session:
            result = await session.execute(
                select(QuizRow).where(QuizRow.sprint_id == sprint_id).order_by(QuizRow.created_at)
            )
            return [row.to_domain() for row in result.scalars()]

    async def list_quiz_attempts(self, quiz_id: str, user_id: str) -> list[QuizAttempt]:
        async with self._scope() as session:
            result = await session.execute(
                select(QuizAttemptRow)
                .where(QuizAttemptRow.quiz_id == quiz_id, QuizAttemptRow.user_id == user_id)
                .order_by(QuizAttemptRow.attempt_number)
            )
            return [row.to_domain() for row in result.scalars()]

    async def save_quiz_attempt(self, attempt: QuizAttempt) -> None:
        async with self._scope() as session:
            session.add(QuizAttemptRow.from_domain(attempt))

    # =========================================================================
    # Sprints
    # =========================================================================

    async def get_sprint(self, sprint_id: str) -> Sprint | None:
        async with self._scope() as session:
            row = await session.get(SprintRow, sprint_id)
            return row.to_domain() if row else None

    async def get_sprint_by_day(self, objective_id: str, day_number: int) -> Sprint | None:
        async with self._scope() as session:
            result = await session.execute(
                select(SprintRow).where(
                    SprintRow.objective_id == objective_id,
                    SprintRow.day_number == day_number,
                )
            )
            row = result.scalar_one_or_none()
            return row.to_domain() if row else None

    async def get_last_sprint(self, objective_id: str) -> Sprint | None:
        sprints = await self.list_recent_sprints(objective_id, 1)
        return sprints[0] if sprints else None

    async def list_recent_sprints(self, objective_id: str, limit: int) -> list[Sprint]:
        async with self._scope() as session:
            result = await session.execute(
                select(SprintRow)
                .where(SprintRow.objective_id == objective_id)
                .order_by(SprintRow.day_number.desc())
                .limit(limit)
            )
            return [row.to_domain() for row in result.scalars()]

    async def list_recent_scored_sprints(self, objective_id: str, limit: int) -> list[Sprint]:
        async with self._scope() as session:
            result = await session.execute(
                select(SprintRow)
                .where(
                    SprintRow.objective_id == objective_id,
                    SprintRow.score.is_not(None),
                    or_(
                        SprintRow.status == SprintStatus.COMPLETED.value,
                        SprintRow.completed_at.is_not(None),
                    ),
                )
                .order_by(SprintRow.day_number.desc())
                .limit(limit)
            )
            return [row.to_domain() for row in result.scalars()]

    async def update_sprint(self, sprint: Sprint) -> None:
        async with self._scope() as session:
            row = await session.get(SprintRow, sprint.id)
            if row is None:
                raise NotFoundError(f"Sprint {sprint.id} not found", details={"sprint_id": sprint.id})
            row.apply(sprint)

    async def record_generated_sprint(self, sprint: Sprint) -> Sprint:
        """
        Insert the sprint, link its neighbours and bump objective counters
        in one transaction.
        """
        async with self._scope() as session:
            objective = await session.get(ObjectiveRow, sprint.objective_id, with_for_update=True)
            if objective is None:
                raise NotFoundError(
                    f"Objective {sprint.objective_id} not found",
                    details={"objective_id": sprint.objective_id},
                )

            row = SprintRow.from_domain(sprint)
            session.add(row)
            try:
                await session.flush()
            except IntegrityError as e:
                raise DuplicateSprintError(sprint.objective_id, sprint.day_number) from e

            previous = (
                await session.execute(
                    select(SprintRow)
                    .where(
                        SprintRow.objective_id == sprint.objective_id,
                        SprintRow.day_number < sprint.day_number,
                    )
                    .order_by(SprintRow.day_number.desc())
                    .limit(1)
                )
            ).scalar_one_or_none()
            following = (
                await session.execute(
                    select(SprintRow)
                    .where(
                        SprintRow.objective_id == sprint.objective_id,
                        SprintRow.day_number > sprint.day_number,
                    )
                    .order_by(SprintRow.day_number)
                    .limit(1)
                )
            ).scalar_one_or_none()

            if previous is not None:
                previous.next_sprint_id = row.id
            if following is not None:
                row.next_sprint_id = following.id

            objective.current_day = max(objective.current_day, sprint.day_number)
            objective.total_sprints_generated += 1
            await session.flush()
            return row.to_domain()
