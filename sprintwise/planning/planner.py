"""
Planner implementations.

- HttpPlanner: remote planning service over HTTP with retry
- FallbackPlanner: deterministic heuristic plan, never fails
- ResilientPlanner: primary planner with heuristic fallback
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Protocol

import httpx
from loguru import logger
from pydantic import ValidationError

from sprintwise.core.errors import GenerationFailure
from sprintwise.core.models import SkillDifficulty
from sprintwise.planning.context import PlannerContext
from sprintwise.planning.plan import MicroTask, SprintPlan

DEFAULT_DAILY_HOURS = 2.0
DAYS_PER_SKILL = 10
DAYS_WITHOUT_SKILLS = 30


class Planner(Protocol):
    """Produces the plan for one sprint day."""

    async def generate_plan(self, context: PlannerContext) -> SprintPlan: ...


# =============================================================================
# Heuristic estimate
# =============================================================================


@dataclass
class DurationEstimate:
    estimated_total_days: int
    daily_hours: float
    difficulty: SkillDifficulty
    multiplier: float


def _has_relevant_strength(strengths: list[str], skill_names: list[str]) -> bool:
    for strength in strengths:
        s = strength.lower()
        for skill in skill_names:
            k = skill.lower()
            if s and k and (s in k or k in s):
                return True
    return False


def estimate_duration(context: PlannerContext) -> DurationEstimate:
    """
    Skill-count based duration, adjusted by the learner profile.

    base = 10 days per required skill (30 with none);
    x0.7 with a relevant strength, x1.3 with more than 3 gaps,
    x1.2 with under 10 hours per week.
    """
    skill_names = [skill.name for skill in context.objective.required_skills]
    learner = context.learner

    base_days = len(skill_names) * DAYS_PER_SKILL if skill_names else DAYS_WITHOUT_SKILLS
    multiplier = 1.0
    if _has_relevant_strength(learner.strengths, skill_names):
        multiplier *= 0.7
    if len(learner.gaps) > 3:
        multiplier *= 1.3
    if learner.hours_per_week and learner.hours_per_week < 10:
        multiplier *= 1.2

    total_days = max(1, round(base_days * multiplier))
    if total_days > 60:
        difficulty = SkillDifficulty.ADVANCED
    elif total_days > 30:
        difficulty = SkillDifficulty.INTERMEDIATE
    else:
        difficulty = SkillDifficulty.BEGINNER

    daily_hours = learner.hours_per_week / 7 if learner.hours_per_week else DEFAULT_DAILY_HOURS
    return DurationEstimate(
        estimated_total_days=total_days,
        daily_hours=daily_hours,
        difficulty=difficulty,
        multiplier=multiplier,
    )


class FallbackPlanner:
    """
    Deterministic planner used when the planning service is unavailable.

    The same context always yields the same plan.
    """

    async def generate_plan(self, context: PlannerContext) -> SprintPlan:
        return self.build_plan(context)

    def build_plan(self, context: PlannerContext) -> SprintPlan:
        estimate = estimate_duration(context)
        # Workload scales with velocity; quarter-hour granularity, at least 30 minutes
        hours = max(0.5, math.floor(estimate.daily_hours * context.objective.learning_velocity * 4) / 4)
        minutes = int(hours * 60)

        skills = context.objective.required_skills
        focus = skills[(context.day_number - 1) % len(skills)] if skills else None
        topic = focus.name if focus else context.objective.title
        skill_ids = [focus.id] if focus else []

        learn = max(10, minutes * 30 // 100)
        reflect = 10
        practice = max(10, minutes - learn - reflect)

        tasks = [
            MicroTask(
                id=f"day{context.day_number}-learn",
                title=f"Study {topic}",
                type="learn",
                estimated_minutes=learn,
                instructions=f"Work through reference material on {topic} and write short notes.",
                completion_criteria=[f"Notes summarizing the key ideas of {topic}"],
                skill_ids=skill_ids,
            ),
            MicroTask(
                id=f"day{context.day_number}-practice",
                title=f"Build a small exercise using {topic}",
                type="practice",
                estimated_minutes=practice,
                instructions=f"Apply {topic} in a small working example and verify it runs.",
                completion_criteria=[f"Working example exercising {topic} committed"],
                skill_ids=skill_ids,
            ),
            MicroTask(
                id=f"day{context.day_number}-reflect",
                title=f"Reflect on Day {context.day_number}",
                type="review",
                estimated_minutes=reflect,
                instructions="Record what worked, what blocked you, and time spent.",
                completion_criteria=["Reflection entry recorded"],
            ),
        ]

        return SprintPlan(
            title=f"Day {context.day_number}: {topic}",
            description=f"Heuristic plan for {context.objective.title}.",
            total_estimated_hours=sum(task.estimated_minutes for task in tasks) / 60,
            difficulty=estimate.difficulty,
            micro_tasks=tasks,
        )


# =============================================================================
# Remote planner
# =============================================================================


class HttpPlanner:
    """HTTP client for the remote sprint planning service."""

    def __init__(
        self,
        api_url: str,
        timeout_seconds: float = 60.0,
        retry_attempts: int = 3,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize planner client.

        Args:
            api_url: Base URL of the planning service
            timeout_seconds: Per-request timeout
            retry_attempts: Attempts on timeouts, connection errors and 5xx
            client: Optional preconfigured client (tests inject a MockTransport)
        """
        self.api_url = api_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = retry_attempts
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def generate_plan(self, context: PlannerContext) -> SprintPlan:
        """
        Request a plan with retry logic.

        Raises:
            GenerationFailure: retries exhausted, 4xx response, or unusable plan
        """
        last_error: Exception | None = None

        for attempt in range(self.retry_attempts):
            try:
                response = await self.client.post(
                    f"{self.api_url}/plans",
                    json=context.model_dump(mode="json"),
                )
                response.raise_for_status()
                data = response.json()
                return SprintPlan.model_validate(data.get("plan", data))

            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(
                    f"Planner timeout on attempt {attempt + 1}/{self.retry_attempts}"
                )

            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code < 500:
                    logger.error(f"Planner client error: {e.response.status_code}")
                    raise GenerationFailure(
                        f"Planner rejected request: {e.response.status_code}",
                        details={"status_code": e.response.status_code},
                    ) from e
                logger.warning(
                    f"Planner server error {e.response.status_code} on attempt "
                    f"{attempt + 1}/{self.retry_attempts}"
                )

            except httpx.RequestError as e:
                last_error = e
                logger.warning(
                    f"Planner request error on attempt {attempt + 1}/{self.retry_attempts}: {e}"
                )

            except (ValidationError, ValueError) as e:
                logger.error(f"Planner returned an unusable plan: {e}")
                raise GenerationFailure("Planner returned an unusable plan") from e

            if attempt < self.retry_attempts - 1:
                wait_time = 2**attempt  # 1s, 2s, 4s
                await asyncio.sleep(wait_time)

        logger.error(f"Planner failed after {self.retry_attempts} attempts: {last_error}")
        raise GenerationFailure(
            f"Planner failed after {self.retry_attempts} attempts",
            details={"error": str(last_error)},
        )


class ResilientPlanner:
    """Try the primary planner; fall back to the heuristic on failure."""

    def __init__(
        self,
        primary: Planner,
        fallback: Planner | None = None,
        timeout_seconds: float | None = None,
    ):
        self.primary = primary
        self.fallback = fallback or FallbackPlanner()
        self.timeout_seconds = timeout_seconds

    async def generate_plan(self, context: PlannerContext) -> SprintPlan:
        try:
            return await asyncio.wait_for(
                self.primary.generate_plan(context), timeout=self.timeout_seconds
            )
        except (GenerationFailure, httpx.HTTPError, ValidationError, asyncio.TimeoutError) as e:
            logger.warning(
                f"Primary planner failed for day {context.day_number} "
                f"({type(e).__name__}); using heuristic plan"
            )
            return await self.fallback.generate_plan(context)
