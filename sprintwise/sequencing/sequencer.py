"""
Sprint Sequencer - generates day-numbered sprints for an objective.

Generation is idempotent per (objective_id, day_number): asking for a day
that already has a sprint returns it unchanged. All generation for one
objective runs under a per-objective lock, and the storage layer rejects
duplicate days as a second line of defence; a rejected insert is resolved
by returning the row that won.

Per-objective lifecycle:
    no_sprint_yet -> generating -> generated -> completed
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from sprintwise.config import Settings, get_settings
from sprintwise.core.errors import (
    DuplicateSprintError,
    GenerationFailure,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
)
from sprintwise.core.events import EventType, NotificationEvent, NotificationSink
from sprintwise.core.locks import KeyedLock
from sprintwise.core.models import (
    LearnerProfile,
    Objective,
    SkillDifficulty,
    Sprint,
)
from sprintwise.core.repository import ProgressRepository
from sprintwise.planning.context import build_planner_context
from sprintwise.planning.plan import MicroTask, SprintPlan
from sprintwise.planning.planner import Planner
from sprintwise.sequencing.modes import get_generation_config

REVIEW_TASK_MINUTES = 30
REVIEW_TASK_CRITERIA = [
    "Complete review exercises",
    "Pass review quiz",
    "Demonstrate understanding",
]


@dataclass
class GenerationCheck:
    should_generate: bool
    reason: str
    next_day_number: int | None = None


@dataclass
class GenerationStatus:
    objective_id: str
    current_day: int
    last_generated_day: int
    buffer_days: int
    is_generating: bool
    next_sprint_ready: bool


class SprintSequencer:
    """Generate next sprints, batches, review sprints and keep the look-ahead buffer."""

    def __init__(
        self,
        repository: ProgressRepository,
        planner: Planner,
        settings: Settings | None = None,
        notifier: NotificationSink | None = None,
    ):
        """
        Initialize sequencer.

        Args:
            repository: Persistence for objectives and sprints
            planner: Produces sprint plans
            settings: Timeouts and batch limits (defaults to get_settings())
            notifier: Receives sprint_generated events
        """
        self.repository = repository
        self.planner = planner
        self.settings = settings or get_settings()
        self.notifier = notifier
        self._locks = KeyedLock()

    # =========================================================================
    # Single sprint
    # =========================================================================

    async def generate_next_sprint(
        self,
        objective_id: str,
        user_id: str,
        current_day: int | None = None,
    ) -> Sprint:
        """
        Generate (or return) the sprint for the next day.

        Args:
            objective_id: Objective to extend
            user_id: Owner of the objective
            current_day: Explicit day number; defaults to last day + 1 (or 1)

        Returns:
            The new sprint, or the existing one for that day

        Raises:
            NotFoundError: objective missing or owned by another user
            InvalidRequestError: learner profile missing or invalid day
            GenerationFailure: planner failed, timed out or returned an unusable plan
        """
        if current_day is not None and current_day < 1:
            raise InvalidRequestError(
                "Day number must be at least 1", details={"day_number": current_day}
            )
        await self._load_owned_objective(objective_id, user_id)
        profile = await self._load_profile(user_id)

        async with self._locks.hold(objective_id):
            objective = await self._load_owned_objective(objective_id, user_id)
            day = await self._resolve_day(objective_id, current_day)

            existing = await self.repository.get_sprint_by_day(objective_id, day)
            if existing is not None:
                logger.debug(f"Sprint for objective {objective_id} day {day} already exists")
                return existing

            plan = await self._request_plan(objective, profile, day)
            sprint = Sprint(
                objective_id=objective_id,
                day_number=day,
                title=plan.title,
                difficulty=plan.difficulty.value,
                total_estimated_hours=plan.total_estimated_hours,
                plan=plan.to_record(),
                target_skill_ids=self._target_skills(plan, objective),
                is_auto_generated=True,
            )
            stored = await self._record(sprint)

        logger.info(
            f"Sprint generated for objective {objective_id}: day {stored.day_number} "
            f"'{stored.title}'"
        )
        await self._notify_generated(user_id, stored)
        return stored

    async def generate_review_sprint(
        self,
        objective_id: str,
        user_id: str,
        skill_ids: Sequence[str],
    ) -> Sprint:
        """
        Insert a review sprint at the next day number.

        The plan is built deterministically with one review task per skill;
        no planner call is made.
        """
        skill_ids = list(dict.fromkeys(skill_ids))
        if not skill_ids:
            raise InvalidRequestError("A review sprint needs at least one skill")
        await self._load_owned_objective(objective_id, user_id)

        skills = {skill.id: skill for skill in await self.repository.get_skills(skill_ids)}
        names = [skills[sid].name if sid in skills else sid for sid in skill_ids]
        title = "Review: " + " & ".join(names[:2])
        if len(names) > 2:
            title += f" +{len(names) - 2} more"

        plan = SprintPlan(
            title=title,
            description="Spaced repetition review: check that previously learned skills are retained.",
            total_estimated_hours=len(skill_ids) * REVIEW_TASK_MINUTES / 60,
            difficulty=SkillDifficulty.INTERMEDIATE,
            micro_tasks=[
                MicroTask(
                    id=f"review-{skill_id}",
                    title=f"Review {name}",
                    type="review",
                    estimated_minutes=REVIEW_TASK_MINUTES,
                    instructions=f"Revisit {name} and complete the review exercises.",
                    completion_criteria=list(REVIEW_TASK_CRITERIA),
                    skill_ids=[skill_id],
                )
                for skill_id, name in zip(skill_ids, names)
            ],
        )

        async with self._locks.hold(objective_id):
            day = await self._resolve_day(objective_id, None)
            sprint = Sprint(
                objective_id=objective_id,
                day_number=day,
                title=plan.title,
                difficulty=plan.difficulty.value,
                total_estimated_hours=plan.total_estimated_hours,
                plan=plan.to_record(),
                target_skill_ids=skill_ids,
                is_auto_generated=True,
                is_review_sprint=True,
            )
            stored = await self._record(sprint)

        logger.info(f"Review sprint inserted for objective {objective_id} on day {stored.day_number}")
        await self._notify_generated(user_id, stored)
        return stored

    # =========================================================================
    # Batches + buffer
    # =========================================================================

    async def generate_sprint_batch(
        self,
        objective_id: str,
        user_id: str,
        start_day: int,
        count: int,
        cancel_event: asyncio.Event | None = None,
    ) -> list[Sprint]:
        """
        Generate ``count`` consecutive days starting at ``start_day``.

        Steps run strictly in order. A generation or persistence failure ends
        the batch and the sprints produced so far are returned; a set ``cancel_event``
        stops the batch before the next step.

        Raises:
            InvalidRequestError: count outside [1, max_batch_size] or start_day < 1
        """
        if count <= 0 or count > self.settings.max_batch_size:
            raise InvalidRequestError(
                f"Batch count must be between 1 and {self.settings.max_batch_size}",
                details={"count": count},
            )
        if start_day < 1:
            raise InvalidRequestError(
                "Start day must be at least 1", details={"start_day": start_day}
            )

        sprints: list[Sprint] = []
        for offset in range(count):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(
                    f"Batch for objective {objective_id} cancelled after {len(sprints)} sprints"
                )
                break
            try:
                sprint = await self.generate_next_sprint(
                    objective_id, user_id, current_day=start_day + offset
                )
            except (GenerationFailure, PersistenceError) as e:
                logger.error(
                    f"Batch for objective {objective_id} stopped at day {start_day + offset}: "
                    f"{e.message}"
                )
                break
            sprints.append(sprint)
        return sprints

    async def maintain_sprint_buffer(self, objective_id: str) -> list[Sprint]:
        """
        Top up the look-ahead buffer for an objective.

        buffer = last generated day - completed days. When it falls below the
        mode's min_days_buffer, a batch of min(lookahead - buffer, batch_size)
        is generated from the day after the last one. Persistence errors
        abandon this pass and are logged.
        """
        try:
            objective = await self.repository.get_objective(objective_id)
            if objective is None or not objective.auto_generate_next_sprint:
                return []
            profile = await self.repository.get_learner_profile(objective.user_id)
            if profile is None:
                return []

            config = get_generation_config(objective.sprint_generation_mode)
            last = await self.repository.get_last_sprint(objective_id)
            last_day = last.day_number if last else 0
            buffer_days = last_day - objective.completed_days

            if buffer_days >= config.min_days_buffer:
                return []
            to_generate = min(config.lookahead_days - buffer_days, config.batch_size)
            if to_generate <= 0:
                return []

            logger.info(
                f"Maintaining buffer for objective {objective_id}: buffer={buffer_days} "
                f"generating={to_generate}"
            )
            return await self.generate_sprint_batch(
                objective_id, objective.user_id, start_day=last_day + 1, count=to_generate
            )
        except PersistenceError as e:
            logger.error(f"Buffer maintenance for objective {objective_id} abandoned: {e.message}")
            return []

    # =========================================================================
    # Queries
    # =========================================================================

    async def should_generate_next(
        self,
        objective_id: str,
        current_sprint_id: str | None = None,
    ) -> GenerationCheck:
        """Whether the next sprint should be generated now, and for which day."""
        objective = await self.repository.get_objective(objective_id)
        if objective is None:
            return GenerationCheck(False, "Objective not found")
        if not objective.auto_generate_next_sprint:
            return GenerationCheck(False, "Auto-generation disabled")
        if (
            objective.estimated_total_days is not None
            and objective.current_day >= objective.estimated_total_days
        ):
            return GenerationCheck(False, "Objective estimated duration reached")

        if current_sprint_id is not None:
            current = await self.repository.get_sprint(current_sprint_id)
            if current is None or not current.is_completed:
                return GenerationCheck(False, "Current sprint not completed")

        last = await self.repository.get_last_sprint(objective_id)
        next_day = last.day_number + 1 if last else 1
        return GenerationCheck(True, "Ready to generate next sprint", next_day)

    async def get_generation_status(self, objective_id: str) -> GenerationStatus:
        objective = await self.repository.get_objective(objective_id)
        if objective is None:
            raise NotFoundError(
                f"Objective {objective_id} not found", details={"objective_id": objective_id}
            )
        last = await self.repository.get_last_sprint(objective_id)
        last_day = last.day_number if last else 0
        return GenerationStatus(
            objective_id=objective_id,
            current_day=objective.current_day,
            last_generated_day=last_day,
            buffer_days=last_day - objective.completed_days,
            is_generating=self._locks.is_locked(objective_id),
            next_sprint_ready=last_day > objective.current_day,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    async def _load_owned_objective(self, objective_id: str, user_id: str) -> Objective:
        objective = await self.repository.get_objective(objective_id)
        if objective is None or objective.user_id != user_id:
            raise NotFoundError(
                f"Objective {objective_id} not found", details={"objective_id": objective_id}
            )
        return objective

    async def _load_profile(self, user_id: str) -> LearnerProfile:
        profile = await self.repository.get_learner_profile(user_id)
        if profile is None:
            raise InvalidRequestError(
                "Learner profile required for sprint generation",
                code="LEARNER_PROFILE_REQUIRED",
                details={"user_id": user_id},
            )
        return profile

    async def _resolve_day(self, objective_id: str, current_day: int | None) -> int:
        if current_day is not None:
            return current_day
        last = await self.repository.get_last_sprint(objective_id)
        return last.day_number + 1 if last else 1

    async def _request_plan(
        self, objective: Objective, profile: LearnerProfile, day: int
    ) -> SprintPlan:
        recent = await self.repository.list_recent_sprints(
            objective.id, self.settings.context_sprint_count + 1
        )
        previous = sorted(
            (s for s in recent if s.day_number < day), key=lambda s: s.day_number
        )[-self.settings.context_sprint_count :]
        context = build_planner_context(
            objective=objective,
            profile=profile,
            day_number=day,
            previous_sprints=previous,
            skills=await self.repository.get_skills(objective.required_skill_ids),
            milestone=await self.repository.get_next_incomplete_milestone(objective.id),
        )

        try:
            plan = await asyncio.wait_for(
                self.planner.generate_plan(context),
                timeout=self.settings.planner_timeout_seconds,
            )
        except GenerationFailure:
            raise
        except asyncio.TimeoutError as e:
            raise GenerationFailure(
                f"Planner timed out after {self.settings.planner_timeout_seconds}s",
                details={"objective_id": objective.id, "day_number": day},
            ) from e
        except Exception as e:
            raise GenerationFailure(
                f"Planner failed: {e}",
                details={"objective_id": objective.id, "day_number": day},
            ) from e

        if not isinstance(plan, SprintPlan):
            raise GenerationFailure(
                "Planner returned an unusable plan",
                details={"objective_id": objective.id, "day_number": day},
            )
        return plan

    async def _record(self, sprint: Sprint) -> Sprint:
        try:
            return await self.repository.record_generated_sprint(sprint)
        except DuplicateSprintError as e:
            winner = await self.repository.get_sprint_by_day(e.objective_id, e.day_number)
            if winner is None:
                raise
            logger.warning(
                f"Sprint for objective {e.objective_id} day {e.day_number} created "
                "concurrently; returning existing row"
            )
            return winner

    @staticmethod
    def _target_skills(plan: SprintPlan, objective: Objective) -> list[str]:
        skill_ids = [sid for task in plan.micro_tasks for sid in task.skill_ids]
        return list(dict.fromkeys(skill_ids)) or list(objective.required_skill_ids)

    async def _notify_generated(self, user_id: str, sprint: Sprint) -> None:
        if self.notifier is None:
            return
        await self.notifier.emit(
            NotificationEvent(
                type=EventType.SPRINT_GENERATED,
                title="New sprint ready",
                message=f"Day {sprint.day_number}: {sprint.title}",
                user_id=user_id,
                payload={
                    "objective_id": sprint.objective_id,
                    "sprint_id": sprint.id,
                    "day_number": sprint.day_number,
                    "is_review_sprint": sprint.is_review_sprint,
                },
            )
        )
