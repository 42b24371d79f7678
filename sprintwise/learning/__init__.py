"""
Learning Module - Mastery tracking, review scheduling and pacing.

Components:
- skill_tracker: EWMA skill levels, status thresholds, struggling areas
- spaced_repetition: SM-2 style review schedules and review-sprint decisions
- performance: Recent-score trend analysis and bounded pacing recalibration
"""

from sprintwise.learning.performance import (
    AdaptationDecision,
    DifficultyAdjustment,
    EstimateAdjustment,
    PacingAction,
    PerformanceAnalysis,
    PerformanceAnalyzer,
    Trend,
    determine_trend,
)
from sprintwise.learning.skill_tracker import (
    SkillMap,
    SkillTracker,
    SkillUpdateResult,
    StrugglingArea,
    fold_level,
    status_for_level,
)
from sprintwise.learning.spaced_repetition import (
    DueReview,
    ReviewDecision,
    ReviewRecommendation,
    SpacedRepetitionScheduler,
    ease_adjustment,
)

__all__ = [
    # Mastery
    "SkillTracker",
    "SkillUpdateResult",
    "SkillMap",
    "StrugglingArea",
    "fold_level",
    "status_for_level",
    # Review scheduling
    "SpacedRepetitionScheduler",
    "ReviewDecision",
    "DueReview",
    "ReviewRecommendation",
    "ease_adjustment",
    # Pacing
    "PerformanceAnalyzer",
    "PerformanceAnalysis",
    "AdaptationDecision",
    "DifficultyAdjustment",
    "EstimateAdjustment",
    "PacingAction",
    "Trend",
    "determine_trend",
]
