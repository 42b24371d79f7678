"""
Core Module - Shared domain records, errors and infrastructure.

Components:
- models: Domain dataclasses and enums (Objective, Sprint, UserSkill, ...)
- errors: Exception taxonomy (NotFound, InvalidRequest, GenerationFailure)
- events: Notification events emitted for external delivery
- locks: Keyed asyncio locks used to serialize per-entity work
- logging: Loguru sink configuration
- repository: ProgressRepository persistence protocol
"""

from sprintwise.core.errors import (
    AttemptLimitExceeded,
    DuplicateSprintError,
    GenerationFailure,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
    ProgressionError,
)
from sprintwise.core.events import (
    EventType,
    LoggingNotificationSink,
    NotificationEvent,
    NotificationSink,
)
from sprintwise.core.locks import KeyedLock
from sprintwise.core.models import (
    GenerationMode,
    GradedAnswer,
    LearnerProfile,
    Milestone,
    Objective,
    Question,
    QuestionOption,
    QuestionType,
    Quiz,
    QuizAttempt,
    QuizType,
    ReviewSchedule,
    Skill,
    SkillDifficulty,
    SkillStatus,
    Sprint,
    SprintStatus,
    UserSkill,
    new_id,
)
from sprintwise.core.repository import ProgressRepository

__all__ = [
    # Persistence contract
    "ProgressRepository",
    # Errors
    "ProgressionError",
    "NotFoundError",
    "InvalidRequestError",
    "AttemptLimitExceeded",
    "GenerationFailure",
    "PersistenceError",
    "DuplicateSprintError",
    # Events
    "EventType",
    "NotificationEvent",
    "NotificationSink",
    "LoggingNotificationSink",
    # Concurrency
    "KeyedLock",
    # Models
    "GenerationMode",
    "GradedAnswer",
    "LearnerProfile",
    "Milestone",
    "Objective",
    "Question",
    "QuestionOption",
    "QuestionType",
    "Quiz",
    "QuizAttempt",
    "QuizType",
    "ReviewSchedule",
    "Skill",
    "SkillDifficulty",
    "SkillStatus",
    "Sprint",
    "SprintStatus",
    "UserSkill",
    "new_id",
]
