# SQLAlchemy models
from .base import Base
from .mastery import ReviewScheduleRow, SkillRow, UserSkillRow
from .progress import LearnerProfileRow, MilestoneRow, ObjectiveRow, SprintRow
from .quiz import QuizAttemptRow, QuizQuestionRow, QuizRow

__all__ = [
    "Base",
    # Progress
    "LearnerProfileRow",
    "MilestoneRow",
    "ObjectiveRow",
    "SprintRow",
    # Mastery
    "ReviewScheduleRow",
    "SkillRow",
    "UserSkillRow",
    # Quiz
    "QuizAttemptRow",
    "QuizQuestionRow",
    "QuizRow",
]
