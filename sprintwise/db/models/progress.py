"""
Objective, milestone, learner profile and sprint models.

Sprints are addressed by (objective_id, day_number); the
``uq_sprint_objective_day`` constraint keeps day numbers unique per
objective even when two writers race past the in-process lock.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from sprintwise.core.models import (
    GenerationMode,
    LearnerProfile,
    Milestone,
    Objective,
    Sprint,
    SprintStatus,
)

from .base import Base, utcnow


class LearnerProfileRow(Base):
    __tablename__ = "learner_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    strengths: Mapped[list] = mapped_column(JSON, default=list)
    gaps: Mapped[list] = mapped_column(JSON, default=list)
    interests: Mapped[list] = mapped_column(JSON, default=list)
    goals: Mapped[list] = mapped_column(JSON, default=list)
    hours_per_week: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    def to_domain(self) -> LearnerProfile:
        return LearnerProfile(
            id=self.id,
            user_id=self.user_id,
            strengths=list(self.strengths or []),
            gaps=list(self.gaps or []),
            interests=list(self.interests or []),
            goals=list(self.goals or []),
            hours_per_week=self.hours_per_week,
        )

    @classmethod
    def from_domain(cls, profile: LearnerProfile) -> LearnerProfileRow:
        return cls(
            id=profile.id,
            user_id=profile.user_id,
            strengths=list(profile.strengths),
            gaps=list(profile.gaps),
            interests=list(profile.interests),
            goals=list(profile.goals),
            hours_per_week=profile.hours_per_week,
        )


class ObjectiveRow(Base):
    __tablename__ = "objectives"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    success_criteria: Mapped[list] = mapped_column(JSON, default=list)
    required_skill_ids: Mapped[list] = mapped_column(JSON, default=list)
    estimated_total_days: Mapped[int | None] = mapped_column(Integer)
    current_day: Mapped[int] = mapped_column(Integer, default=0)
    completed_days: Mapped[int] = mapped_column(Integer, default=0)
    sprint_generation_mode: Mapped[str] = mapped_column(
        String(16), default=GenerationMode.DAILY.value
    )
    auto_generate_next_sprint: Mapped[bool] = mapped_column(Boolean, default=True)
    total_sprints_generated: Mapped[int] = mapped_column(Integer, default=0)
    learner_profile_id: Mapped[str | None] = mapped_column(String(64))

    # Pacing
    current_difficulty: Mapped[int] = mapped_column(Integer, default=5)
    learning_velocity: Mapped[float] = mapped_column(Float, default=1.0)
    recalibration_count: Mapped[int] = mapped_column(Integer, default=0)
    last_recalibrated_at: Mapped[datetime | None] = mapped_column()

    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Objective({self.id}, day={self.current_day}, mode={self.sprint_generation_mode})>"

    def to_domain(self) -> Objective:
        try:
            mode = GenerationMode(self.sprint_generation_mode)
        except ValueError:
            mode = GenerationMode.DAILY
        return Objective(
            id=self.id,
            user_id=self.user_id,
            title=self.title,
            description=self.description,
            success_criteria=list(self.success_criteria or []),
            required_skill_ids=list(self.required_skill_ids or []),
            estimated_total_days=self.estimated_total_days,
            current_day=self.current_day,
            completed_days=self.completed_days,
            sprint_generation_mode=mode,
            auto_generate_next_sprint=self.auto_generate_next_sprint,
            total_sprints_generated=self.total_sprints_generated,
            learner_profile_id=self.learner_profile_id,
            current_difficulty=self.current_difficulty,
            learning_velocity=self.learning_velocity,
            recalibration_count=self.recalibration_count,
            last_recalibrated_at=self.last_recalibrated_at,
        )

    def apply(self, objective: Objective) -> None:
        """Copy mutable state from the domain record."""
        self.title = objective.title
        self.description = objective.description
        self.success_criteria = list(objective.success_criteria)
        self.required_skill_ids = list(objective.required_skill_ids)
        self.estimated_total_days = objective.estimated_total_days
        self.current_day = objective.current_day
        self.completed_days = objective.completed_days
        self.sprint_generation_mode = GenerationMode(objective.sprint_generation_mode).value
        self.auto_generate_next_sprint = objective.auto_generate_next_sprint
        self.total_sprints_generated = objective.total_sprints_generated
        self.learner_profile_id = objective.learner_profile_id
        self.current_difficulty = objective.current_difficulty
        self.learning_velocity = objective.learning_velocity
        self.recalibration_count = objective.recalibration_count
        self.last_recalibrated_at = objective.last_recalibrated_at

    @classmethod
    def from_domain(cls, objective: Objective) -> ObjectiveRow:
        row = cls(id=objective.id, user_id=objective.user_id)
        row.apply(objective)
        return row


class MilestoneRow(Base):
    __tablename__ = "milestones"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    objective_id: Mapped[str] = mapped_column(
        ForeignKey("objectives.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    target_day: Mapped[int] = mapped_column(Integer)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_domain(self) -> Milestone:
        return Milestone(
            id=self.id,
            objective_id=self.objective_id,
            title=self.title,
            target_day=self.target_day,
            description=self.description,
            is_completed=self.is_completed,
        )

    @classmethod
    def from_domain(cls, milestone: Milestone) -> MilestoneRow:
        return cls(
            id=milestone.id,
            objective_id=milestone.objective_id,
            title=milestone.title,
            description=milestone.description,
            target_day=milestone.target_day,
            is_completed=milestone.is_completed,
        )


class SprintRow(Base):
    """One day of learning content. ``day_number`` never changes once assigned."""

    __tablename__ = "sprints"
    __table_args__ = (
        UniqueConstraint("objective_id", "day_number", name="uq_sprint_objective_day"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    objective_id: Mapped[str] = mapped_column(
        ForeignKey("objectives.id", ondelete="CASCADE"), index=True
    )
    day_number: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(16), default=SprintStatus.PLANNED.value)
    completion_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    score: Mapped[float | None] = mapped_column(Float)
    title: Mapped[str] = mapped_column(Text, default="")
    difficulty: Mapped[str] = mapped_column(String(16), default="beginner")
    total_estimated_hours: Mapped[float] = mapped_column(Float, default=0.0)
    plan: Mapped[dict] = mapped_column(JSON, default=dict)
    reflection: Mapped[str | None] = mapped_column(Text)
    target_skill_ids: Mapped[list] = mapped_column(JSON, default=list)
    started_at: Mapped[datetime | None] = mapped_column()
    completed_at: Mapped[datetime | None] = mapped_column()
    next_sprint_id: Mapped[str | None] = mapped_column(String(64))
    is_auto_generated: Mapped[bool] = mapped_column(Boolean, default=True)
    is_review_sprint: Mapped[bool] = mapped_column(Boolean, default=False)
    adapted_from: Mapped[str | None] = mapped_column(String(16))
    adaptation_reason: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    def __repr__(self) -> str:
        return f"<Sprint({self.objective_id} day {self.day_number}, {self.status})>"

    def to_domain(self) -> Sprint:
        return Sprint(
            id=self.id,
            objective_id=self.objective_id,
            day_number=self.day_number,
            status=SprintStatus(self.status),
            completion_percentage=self.completion_percentage,
            score=self.score,
            title=self.title,
            difficulty=self.difficulty,
            total_estimated_hours=self.total_estimated_hours,
            plan=dict(self.plan or {}),
            reflection=self.reflection,
            target_skill_ids=list(self.target_skill_ids or []),
            started_at=self.started_at,
            completed_at=self.completed_at,
            next_sprint_id=self.next_sprint_id,
            is_auto_generated=self.is_auto_generated,
            is_review_sprint=self.is_review_sprint,
            adapted_from=self.adapted_from,
            adaptation_reason=self.adaptation_reason,
        )

    def apply(self, sprint: Sprint) -> None:
        """Copy mutable state from the domain record (day_number excluded)."""
        self.status = SprintStatus(sprint.status).value
        self.completion_percentage = sprint.completion_percentage
        self.score = sprint.score
        self.title = sprint.title
        self.difficulty = sprint.difficulty
        self.total_estimated_hours = sprint.total_estimated_hours
        self.plan = dict(sprint.plan)
        self.reflection = sprint.reflection
        self.target_skill_ids = list(sprint.target_skill_ids)
        self.started_at = sprint.started_at
        self.completed_at = sprint.completed_at
        self.next_sprint_id = sprint.next_sprint_id
        self.is_auto_generated = sprint.is_auto_generated
        self.is_review_sprint = sprint.is_review_sprint
        self.adapted_from = sprint.adapted_from
        self.adaptation_reason = sprint.adaptation_reason

    @classmethod
    def from_domain(cls, sprint: Sprint) -> SprintRow:
        row = cls(id=sprint.id, objective_id=sprint.objective_id, day_number=sprint.day_number)
        row.apply(sprint)
        return row
