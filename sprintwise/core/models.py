"""
Core domain records for the progression engine.

These dataclasses are the canonical in-memory representation passed
between the grading, mastery, scheduling and sequencing components.
The persistence layer (sprintwise.db) maps ORM rows to and from them.

Design:
- Enums are ``str`` subclasses so they serialize as their value
- Records are mutable; only the owning component mutates them
- Identifiers are opaque strings
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4


def new_id() -> str:
    """Generate a new opaque identifier."""
    return uuid4().hex


class SkillStatus(str, Enum):
    """
    Mastery status derived from a 0-100 skill level.

    Thresholds are configured in Settings; the defaults are
    [0,25) not_started, [25,60) developing, [60,85) proficient,
    [85,100] mastered.
    """

    NOT_STARTED = "not_started"
    DEVELOPING = "developing"
    PROFICIENT = "proficient"
    MASTERED = "mastered"

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return self.value.replace("_", " ").title()

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            SkillStatus.NOT_STARTED: "dim",
            SkillStatus.DEVELOPING: "yellow",
            SkillStatus.PROFICIENT: "cyan",
            SkillStatus.MASTERED: "green",
        }[self]


class SkillDifficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class QuizType(str, Enum):
    PRE_SPRINT = "pre_sprint"
    POST_SPRINT = "post_sprint"
    SKILL_CHECK = "skill_check"
    REVIEW = "review"
    MILESTONE = "milestone"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    MULTIPLE_SELECT = "multiple_select"
    TRUE_FALSE = "true_false"
    CODE_OUTPUT = "code_output"
    CODE_COMPLETION = "code_completion"
    SHORT_ANSWER = "short_answer"


class GenerationMode(str, Enum):
    """How sprints are pre-generated for an objective."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MILESTONE = "MILESTONE"
    MANUAL = "MANUAL"


class SprintStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# =============================================================================
# Reference data
# =============================================================================


@dataclass(frozen=True)
class Skill:
    """Immutable skill reference data."""

    id: str
    name: str
    difficulty: SkillDifficulty = SkillDifficulty.BEGINNER


@dataclass
class LearnerProfile:
    """Learner profile snapshot used to personalize sprint generation."""

    id: str
    user_id: str
    strengths: list[str] = field(default_factory=list)
    gaps: list[str] = field(default_factory=list)
    interests: list[str] = field(default_factory=list)
    goals: list[str] = field(default_factory=list)
    hours_per_week: float | None = None


# =============================================================================
# Mastery + review state
# =============================================================================


@dataclass
class UserSkill:
    """Per-user mastery state for one skill. Mutated only by SkillTracker."""

    user_id: str
    skill_id: str
    level: float = 0.0
    status: SkillStatus = SkillStatus.NOT_STARTED
    last_assessed_at: datetime | None = None
    practice_count: int = 0
    success_rate: float = 0.0  # 0-1 running mean of observed scores
    consecutive_failures: int = 0
    mastered_at: datetime | None = None
    level_history: list[float] = field(default_factory=list)


@dataclass
class ReviewSchedule:
    """Spaced-repetition state for one (user, skill) pair."""

    user_id: str
    skill_id: str
    next_review_due_day: int
    interval_days: int = 1
    ease_factor: float = 2.5
    review_count: int = 0
    last_score: float | None = None
    average_review_score: float = 0.0
    is_retained: bool = False


# =============================================================================
# Quizzes
# =============================================================================


@dataclass(frozen=True)
class QuestionOption:
    id: str
    label: str = ""
    is_correct: bool = False


@dataclass
class Question:
    """
    A single knowledge-check question.

    Correctness data depends on ``type``: option-based types use
    ``options[*].is_correct``; code_output uses ``expected_output``.
    """

    id: str
    type: QuestionType
    points: float = 1.0
    skill_ids: list[str] = field(default_factory=list)
    options: list[QuestionOption] = field(default_factory=list)
    expected_output: str | None = None
    prompt: str = ""

    @property
    def correct_option_ids(self) -> list[str]:
        return [option.id for option in self.options if option.is_correct]


@dataclass
class Quiz:
    id: str
    type: QuizType
    questions: list[Question] = field(default_factory=list)
    passing_score: float = 80.0
    attempts_allowed: int = 3
    sprint_id: str | None = None
    title: str = ""


@dataclass
class GradedAnswer:
    question_id: str
    answer: Any
    is_correct: bool
    points_earned: float
    needs_manual_review: bool = False


@dataclass
class QuizAttempt:
    quiz_id: str
    user_id: str
    attempt_number: int
    score: float
    passed: bool
    skill_scores: dict[str, float] = field(default_factory=dict)
    elapsed_seconds: float = 0.0
    graded_answers: list[GradedAnswer] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    completed_at: datetime | None = None


# =============================================================================
# Objectives + sprints
# =============================================================================


@dataclass
class Milestone:
    id: str
    objective_id: str
    title: str
    target_day: int
    description: str | None = None
    is_completed: bool = False


@dataclass
class Objective:
    """A learning goal decomposed into a day-numbered sequence of sprints."""

    id: str
    user_id: str
    title: str
    description: str | None = None
    success_criteria: list[str] = field(default_factory=list)
    required_skill_ids: list[str] = field(default_factory=list)
    estimated_total_days: int | None = None
    current_day: int = 0
    completed_days: int = 0
    sprint_generation_mode: GenerationMode = GenerationMode.DAILY
    auto_generate_next_sprint: bool = True
    total_sprints_generated: int = 0
    learner_profile_id: str | None = None

    # Pacing state owned by PerformanceAnalyzer
    current_difficulty: int = 5
    learning_velocity: float = 1.0
    recalibration_count: int = 0
    last_recalibrated_at: datetime | None = None


@dataclass
class Sprint:
    """One day of learning content within an objective."""

    objective_id: str
    day_number: int
    id: str = field(default_factory=new_id)
    status: SprintStatus = SprintStatus.PLANNED
    completion_percentage: float = 0.0
    score: float | None = None
    title: str = ""
    difficulty: str = SkillDifficulty.BEGINNER.value
    total_estimated_hours: float = 0.0
    plan: dict[str, Any] = field(default_factory=dict)
    reflection: str | None = None
    target_skill_ids: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    next_sprint_id: str | None = None
    is_auto_generated: bool = True
    is_review_sprint: bool = False
    adapted_from: str | None = None  # increased | decreased | maintained
    adaptation_reason: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == SprintStatus.COMPLETED or self.completed_at is not None

    @property
    def deliverables(self) -> list[str]:
        """Completion criteria listed by the plan's micro-tasks."""
        items: list[str] = []
        for task in self.plan.get("micro_tasks", []):
            items.extend(task.get("completion_criteria", []))
        return items
