"""Skill reference data, per-user mastery and review schedule models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sprintwise.core.models import (
    ReviewSchedule,
    Skill,
    SkillDifficulty,
    SkillStatus,
    UserSkill,
)

from .base import Base, utcnow


class SkillRow(Base):
    __tablename__ = "skills"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text)
    difficulty: Mapped[str] = mapped_column(String(16), default=SkillDifficulty.BEGINNER.value)

    def to_domain(self) -> Skill:
        return Skill(id=self.id, name=self.name, difficulty=SkillDifficulty(self.difficulty))

    @classmethod
    def from_domain(cls, skill: Skill) -> SkillRow:
        return cls(id=skill.id, name=skill.name, difficulty=SkillDifficulty(skill.difficulty).value)


class UserSkillRow(Base):
    __tablename__ = "user_skills"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    skill_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    level: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(16), default=SkillStatus.NOT_STARTED.value)
    last_assessed_at: Mapped[datetime | None] = mapped_column()
    practice_count: Mapped[int] = mapped_column(Integer, default=0)
    success_rate: Mapped[float] = mapped_column(Float, default=0.0)
    consecutive_failures: Mapped[int] = mapped_column(Integer, default=0)
    mastered_at: Mapped[datetime | None] = mapped_column()
    level_history: Mapped[list] = mapped_column(JSON, default=list)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    def to_domain(self) -> UserSkill:
        return UserSkill(
            user_id=self.user_id,
            skill_id=self.skill_id,
            level=self.level,
            status=SkillStatus(self.status),
            last_assessed_at=self.last_assessed_at,
            practice_count=self.practice_count,
            success_rate=self.success_rate,
            consecutive_failures=self.consecutive_failures,
            mastered_at=self.mastered_at,
            level_history=list(self.level_history or []),
        )

    def apply(self, user_skill: UserSkill) -> None:
        self.level = user_skill.level
        self.status = SkillStatus(user_skill.status).value
        self.last_assessed_at = user_skill.last_assessed_at
        self.practice_count = user_skill.practice_count
        self.success_rate = user_skill.success_rate
        self.consecutive_failures = user_skill.consecutive_failures
        self.mastered_at = user_skill.mastered_at
        self.level_history = list(user_skill.level_history)


class ReviewScheduleRow(Base):
    __tablename__ = "review_schedules"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    skill_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    next_review_due_day: Mapped[int] = mapped_column(Integer, index=True)
    interval_days: Mapped[int] = mapped_column(Integer, default=1)
    ease_factor: Mapped[float] = mapped_column(Float, default=2.5)
    review_count: Mapped[int] = mapped_column(Integer, default=0)
    last_score: Mapped[float | None] = mapped_column(Float)
    average_review_score: Mapped[float] = mapped_column(Float, default=0.0)
    is_retained: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_domain(self) -> ReviewSchedule:
        return ReviewSchedule(
            user_id=self.user_id,
            skill_id=self.skill_id,
            next_review_due_day=self.next_review_due_day,
            interval_days=self.interval_days,
            ease_factor=self.ease_factor,
            review_count=self.review_count,
            last_score=self.last_score,
            average_review_score=self.average_review_score,
            is_retained=self.is_retained,
        )

    def apply(self, schedule: ReviewSchedule) -> None:
        self.next_review_due_day = schedule.next_review_due_day
        self.interval_days = schedule.interval_days
        self.ease_factor = schedule.ease_factor
        self.review_count = schedule.review_count
        self.last_score = schedule.last_score
        self.average_review_score = schedule.average_review_score
        self.is_retained = schedule.is_retained
