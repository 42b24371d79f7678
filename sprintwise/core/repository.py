"""
Persistence contract for the progression engine.

Components depend on this protocol only. ``sprintwise.db.repository``
provides the SQLAlchemy implementation; tests use an in-memory fake.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from sprintwise.core.models import (
    LearnerProfile,
    Milestone,
    Objective,
    Quiz,
    QuizAttempt,
    ReviewSchedule,
    Skill,
    Sprint,
    UserSkill,
)


class ProgressRepository(Protocol):
    # Objectives + profiles
    async def get_objective(self, objective_id: str) -> Objective | None: ...

    async def update_objective(self, objective: Objective) -> None: ...

    async def get_learner_profile(self, user_id: str) -> LearnerProfile | None: ...

    async def get_next_incomplete_milestone(self, objective_id: str) -> Milestone | None: ...

    # Skills
    async def get_skills(self, skill_ids: Sequence[str]) -> list[Skill]: ...

    async def get_user_skill(self, user_id: str, skill_id: str) -> UserSkill | None: ...

    async def list_user_skills(
        self, user_id: str, skill_ids: Sequence[str] | None = None
    ) -> list[UserSkill]: ...

    async def save_user_skill(self, user_skill: UserSkill) -> None: ...

    # Review schedules
    async def get_review_schedule(self, user_id: str, skill_id: str) -> ReviewSchedule | None: ...

    async def list_review_schedules(self, user_id: str) -> list[ReviewSchedule]: ...

    async def save_review_schedule(self, schedule: ReviewSchedule) -> None: ...

    # Quizzes
    async def get_quiz(self, quiz_id: str) -> Quiz | None: ...

    async def list_sprint_quizzes(self, sprint_id: str) -> list[Quiz]: ...

    async def list_quiz_attempts(self, quiz_id: str, user_id: str) -> list[QuizAttempt]: ...

    async def save_quiz_attempt(self, attempt: QuizAttempt) -> None: ...

    # Sprints
    async def get_sprint(self, sprint_id: str) -> Sprint | None: ...

    async def get_sprint_by_day(self, objective_id: str, day_number: int) -> Sprint | None: ...

    async def get_last_sprint(self, objective_id: str) -> Sprint | None: ...

    async def list_recent_sprints(self, objective_id: str, limit: int) -> list[Sprint]:
        """Most recent first, by day number."""
        ...

    async def list_recent_scored_sprints(self, objective_id: str, limit: int) -> list[Sprint]:
        """Most recent completed sprints that carry a score, most recent first."""
        ...

    async def update_sprint(self, sprint: Sprint) -> None: ...

    async def record_generated_sprint(self, sprint: Sprint) -> Sprint:
        """
        Atomically insert ``sprint``, point the previous sprint's
        ``next_sprint_id`` at it, and bump the objective counters
        (current_day = max(current_day, day_number); total_sprints_generated + 1).

        Raises:
            DuplicateSprintError: a sprint already exists for that day
            NotFoundError: the objective does not exist
        """
        ...
