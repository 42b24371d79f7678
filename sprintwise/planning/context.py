"""
Planner input schema and the builder that assembles it.

``PlannerContext`` is versioned: any change to its shape bumps
``CONTEXT_SCHEMA_VERSION`` so planners can reject inputs they do not
understand.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel, Field

from sprintwise.core.models import LearnerProfile, Milestone, Objective, Skill, Sprint

CONTEXT_SCHEMA_VERSION = 1
MAX_REFLECTION_CHARS = 160
MAX_REPEATED_DELIVERABLES = 3

_WHITESPACE = re.compile(r"\s+")


class SkillSummary(BaseModel):
    id: str
    name: str
    difficulty: str


class ObjectiveSummary(BaseModel):
    id: str
    title: str
    description: str | None = None
    success_criteria: list[str] = Field(default_factory=list)
    required_skills: list[SkillSummary] = Field(default_factory=list)
    estimated_total_days: int = 30
    current_difficulty: int = 5
    learning_velocity: float = 1.0


class LearnerSummary(BaseModel):
    strengths: list[str] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    goals: list[str] = Field(default_factory=list)
    hours_per_week: float | None = None


class PreviousSprintSummary(BaseModel):
    day_number: int
    title: str
    deliverables: list[str] = Field(default_factory=list)
    reflection: str | None = None
    score: float | None = None
    completion_percentage: float = 0.0
    is_completed: bool = False


class PerformanceSummary(BaseModel):
    average_completion_rate: float = 0.0
    average_days_per_sprint: float = 1.0
    average_score: float | None = None


class MilestoneSummary(BaseModel):
    title: str
    target_day: int
    description: str | None = None


class PlannerContext(BaseModel):
    """Everything a planner needs to produce the plan for one sprint day."""

    schema_version: Literal[1] = CONTEXT_SCHEMA_VERSION
    day_number: int = Field(..., ge=1)
    objective: ObjectiveSummary
    learner: LearnerSummary
    previous_sprints: list[PreviousSprintSummary] = Field(
        default_factory=list, description="Oldest first"
    )
    performance: PerformanceSummary = Field(default_factory=PerformanceSummary)
    next_milestone: MilestoneSummary | None = None
    instructions: list[str] = Field(default_factory=list)


def normalize_reflection(text: str) -> str:
    """Collapse whitespace and cap the length for prompt inclusion."""
    normalized = _WHITESPACE.sub(" ", text).strip()
    if len(normalized) > MAX_REFLECTION_CHARS:
        return normalized[: MAX_REFLECTION_CHARS - 3] + "..."
    return normalized


def _format_list(items: Sequence[str]) -> str:
    return ", ".join(items) if items else "n/a"


def build_instructions(
    profile: LearnerProfile,
    previous: PreviousSprintSummary | None = None,
) -> list[str]:
    """Free-text guidance for the planner: concrete deliverables, continuity, personalization."""
    instructions = [
        'ACTIONABLE TASKS: Use strong verbs (e.g., "Build", "Configure", "Deploy"). '
        'Avoid generic titles like "Introduction to...".',
        "CONCISE TEXT: Keep descriptions and instructions to a maximum of 3 sentences.",
        "MEASURABLE TASKS: Every micro-task must end with a validation step (tests, command "
        "output, screenshot, repository checkpoint) so completion can be observed.",
    ]

    if previous is not None:
        deliverables = (
            "; ".join(previous.deliverables[:MAX_REPEATED_DELIVERABLES])
            or "previous deliverables"
        )
        instructions.append(
            f"CONTINUATION: Reference Day {previous.day_number}'s outcome "
            f'"{previous.title or "Prior Sprint"}" and design the next increment that '
            "advances that work rather than restarting."
        )
        instructions.append(
            f"DO NOT REPEAT: Avoid recreating prior deliverables ({deliverables}). "
            "Ship a complementary feature or enhancement."
        )
        if previous.reflection:
            instructions.append(
                f'ADDRESS REFLECTION: The learner noted "{normalize_reflection(previous.reflection)}". '
                "Incorporate a task that tackles this insight or blocker."
            )

    if profile.gaps:
        instructions.append(
            f"ADDRESS GAPS ({_format_list(profile.gaps)}): Convert each gap into a concrete "
            "micro-task with a build-or-do deliverable."
        )
    if profile.strengths:
        instructions.append(
            f"LEVERAGE STRENGTHS ({_format_list(profile.strengths)}): Frame at least one "
            "requirement or deliverable so the learner showcases these strengths."
        )
    if profile.interests or profile.goals:
        instructions.append(
            f"ALIGN WITH MOTIVATORS ({_format_list(profile.interests)} | goals: "
            f"{_format_list(profile.goals)}): Anchor the sprint narrative and examples in "
            "these interests."
        )

    instructions.append(
        "REFLECTION LOOP: Include a final micro-task that captures learnings, blockers, and "
        "metrics (time spent, build status) to feed the next sprint."
    )
    return instructions


def summarize_sprint(sprint: Sprint) -> PreviousSprintSummary:
    return PreviousSprintSummary(
        day_number=sprint.day_number,
        title=sprint.title or sprint.plan.get("title") or "Sprint",
        deliverables=sprint.deliverables,
        reflection=sprint.reflection,
        score=sprint.score,
        completion_percentage=sprint.completion_percentage,
        is_completed=sprint.is_completed,
    )


def summarize_performance(previous_sprints: Sequence[Sprint]) -> PerformanceSummary:
    completed = [s for s in previous_sprints if s.is_completed]
    if not completed:
        return PerformanceSummary()

    durations = [
        (s.completed_at - s.started_at).total_seconds() / 86400
        for s in completed
        if s.started_at is not None and s.completed_at is not None
    ]
    scores = [s.score for s in completed if s.score is not None]
    return PerformanceSummary(
        average_completion_rate=sum(s.completion_percentage for s in completed) / len(completed),
        average_days_per_sprint=sum(durations) / len(durations) if durations else 1.0,
        average_score=sum(scores) / len(scores) if scores else None,
    )


def build_planner_context(
    objective: Objective,
    profile: LearnerProfile,
    day_number: int,
    previous_sprints: Sequence[Sprint],
    skills: Sequence[Skill] = (),
    milestone: Milestone | None = None,
) -> PlannerContext:
    """
    Assemble the planner context for ``day_number``.

    Args:
        objective: Objective being planned
        profile: Learner profile of the objective's owner
        day_number: Day the plan is for
        previous_sprints: Prior sprints, oldest first
        skills: Reference data for the objective's required skills
        milestone: Next incomplete milestone, if any
    """
    summaries = [summarize_sprint(sprint) for sprint in previous_sprints]
    return PlannerContext(
        day_number=day_number,
        objective=ObjectiveSummary(
            id=objective.id,
            title=objective.title,
            description=objective.description,
            success_criteria=list(objective.success_criteria),
            required_skills=[
                SkillSummary(id=skill.id, name=skill.name, difficulty=skill.difficulty.value)
                for skill in skills
            ],
            estimated_total_days=objective.estimated_total_days or 30,
            current_difficulty=objective.current_difficulty,
            learning_velocity=objective.learning_velocity,
        ),
        learner=LearnerSummary(
            strengths=list(profile.strengths),
            gaps=list(profile.gaps),
            interests=list(profile.interests),
            goals=list(profile.goals),
            hours_per_week=profile.hours_per_week,
        ),
        previous_sprints=summaries,
        performance=summarize_performance(previous_sprints),
        next_milestone=(
            MilestoneSummary(
                title=milestone.title,
                target_day=milestone.target_day,
                description=milestone.description,
            )
            if milestone is not None
            else None
        ),
        instructions=build_instructions(profile, summaries[-1] if summaries else None),
    )
