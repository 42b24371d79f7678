"""
Assessment Module - Grading, scoring and quiz gating.

Components:
- grader: Per-question tri-state grading
- scorer: Quiz totals, per-skill percentages, weak areas, recommendations
- validation: Attempt submission with attempt limits, sprint readiness gates
"""

from sprintwise.assessment.grader import GradeOutcome, QuestionGrader, normalize_output
from sprintwise.assessment.scorer import QuizScore, QuizScorer
from sprintwise.assessment.validation import (
    AttemptResult,
    KnowledgeValidationService,
    ProgressionCheck,
    ReadinessCheck,
)

__all__ = [
    # Grading
    "GradeOutcome",
    "QuestionGrader",
    "normalize_output",
    # Scoring
    "QuizScore",
    "QuizScorer",
    # Validation
    "AttemptResult",
    "KnowledgeValidationService",
    "ProgressionCheck",
    "ReadinessCheck",
]
