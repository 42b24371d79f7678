"""
Sprint plan schema returned by planners.

A plan is only usable when it has positive total hours, a difficulty
label, and at least one micro-task, each with verifiable completion
criteria. Planner payloads may use camelCase keys.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from sprintwise.core.models import SkillDifficulty, new_id


class MicroTask(BaseModel):
    """One concrete, checkable unit of work within a sprint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=new_id, description="Task identifier")
    title: str = Field(..., min_length=1, description="Short task title")
    type: str = Field(default="practice", description="learn / practice / build / review")
    estimated_minutes: int = Field(default=30, gt=0, description="Expected effort")
    instructions: str = Field(default="", description="What the learner does")
    completion_criteria: list[str] = Field(
        ...,
        min_length=1,
        description="Verifiable deliverables that mark the task done",
    )
    skill_ids: list[str] = Field(default_factory=list, description="Skills the task exercises")

    @field_validator("completion_criteria")
    @classmethod
    def _criteria_not_blank(cls, value: list[str]) -> list[str]:
        cleaned = [item.strip() for item in value if item and item.strip()]
        if not cleaned:
            raise ValueError("completion_criteria must contain at least one non-blank entry")
        return cleaned


class SprintPlan(BaseModel):
    """Planner output for one sprint day."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(..., min_length=1, description="Sprint title")
    description: str = Field(default="", description="Sprint overview")
    total_estimated_hours: float = Field(..., gt=0, description="Planned effort in hours")
    difficulty: SkillDifficulty = Field(..., description="beginner / intermediate / advanced")
    micro_tasks: list[MicroTask] = Field(..., min_length=1, description="Ordered tasks")

    @property
    def deliverables(self) -> list[str]:
        return [item for task in self.micro_tasks for item in task.completion_criteria]

    def to_record(self) -> dict[str, Any]:
        """Serialize for storage on the Sprint record (snake_case keys)."""
        return self.model_dump(mode="json")
