"""
Performance analysis and pacing recalibration.

Reads recent sprint scores for an objective, derives an average and a
trend, recommends increase / decrease / maintain, and applies a bounded
step to the objective's difficulty and velocity.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from loguru import logger

from sprintwise.config import Settings, get_settings
from sprintwise.core.errors import InvalidRequestError, NotFoundError
from sprintwise.core.events import EventType, NotificationEvent, NotificationSink
from sprintwise.core.models import Objective, SkillDifficulty, Sprint
from sprintwise.core.repository import ProgressRepository
from sprintwise.learning.skill_tracker import SkillTracker


class Trend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class PacingAction(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    MAINTAIN = "maintain"


@dataclass
class PerformanceAnalysis:
    objective_id: str
    average_score: float
    trend: Trend
    recommended_action: PacingAction
    scores: list[float] = field(default_factory=list)  # oldest first
    consistently_high: bool = False
    consistently_low: bool = False
    struggling_skills: list[str] = field(default_factory=list)
    mastered_skills: list[str] = field(default_factory=list)


@dataclass
class AdaptationDecision:
    should_adjust: bool
    adjustment_type: PacingAction
    new_difficulty: int
    new_velocity: float
    reasoning: str
    recommendations: list[str] = field(default_factory=list)
    estimated_days_change: int = 0


@dataclass
class DifficultyAdjustment:
    sprint: Sprint
    previous_difficulty: str
    new_difficulty: str
    adjustment_type: str  # increased | decreased | maintained
    adjustments: list[str] = field(default_factory=list)


@dataclass
class EstimateAdjustment:
    previous_total_days: int
    new_estimated_total_days: int
    days_adjustment: int
    reasoning: str


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def determine_trend(scores: list[float], threshold: float = 5.0) -> Trend:
    """
    Compare the mean of the earlier half with the mean of the later half.

    With an odd count the middle score belongs to both halves.
    """
    n = len(scores)
    if n < 2:
        return Trend.STABLE
    first = scores[: math.ceil(n / 2)]
    second = scores[n // 2 :]
    delta = _mean(second) - _mean(first)
    if delta > threshold:
        return Trend.IMPROVING
    if delta < -threshold:
        return Trend.DECLINING
    return Trend.STABLE


DIFFICULTY_LADDER = [
    SkillDifficulty.BEGINNER.value,
    SkillDifficulty.INTERMEDIATE.value,
    SkillDifficulty.ADVANCED.value,
]


def _remaining_days(objective: Objective) -> int:
    return max(0, (objective.estimated_total_days or 0) - objective.completed_days)


class PerformanceAnalyzer:
    """Judge recent performance and adjust an objective's pacing state."""

    def __init__(
        self,
        repository: ProgressRepository,
        skill_tracker: SkillTracker,
        settings: Settings | None = None,
        notifier: NotificationSink | None = None,
    ):
        self.repository = repository
        self.skill_tracker = skill_tracker
        self.settings = settings or get_settings()
        self.notifier = notifier

    async def _get_objective(self, objective_id: str) -> Objective:
        objective = await self.repository.get_objective(objective_id)
        if objective is None:
            raise NotFoundError(
                f"Objective {objective_id} not found", details={"objective_id": objective_id}
            )
        return objective

    async def analyze_performance(
        self,
        user_id: str,
        objective_id: str,
        recent_sprint_count: int | None = None,
    ) -> PerformanceAnalysis:
        """
        Analyze the most recent completed, scored sprints of an objective.

        Args:
            user_id: Learner owning the objective
            objective_id: Objective to analyze
            recent_sprint_count: Window size (defaults to settings.recent_sprint_count)

        Returns:
            PerformanceAnalysis; with no scored sprints the average is 0,
            the trend stable and the action maintain
        """
        s = self.settings
        objective = await self._get_objective(objective_id)
        count = recent_sprint_count or s.recent_sprint_count

        recent = await self.repository.list_recent_scored_sprints(objective_id, count)
        scores = [float(sprint.score) for sprint in reversed(recent) if sprint.score is not None]

        average = _mean(scores)
        trend = determine_trend(scores, s.trend_threshold)

        if not scores:
            action = PacingAction.MAINTAIN
        elif average >= s.increase_score and trend != Trend.DECLINING:
            action = PacingAction.INCREASE
        elif average < s.decrease_score or trend == Trend.DECLINING:
            action = PacingAction.DECREASE
        else:
            action = PacingAction.MAINTAIN

        n = len(scores)
        consistently_high = n > 0 and sum(1 for x in scores if x >= 90) >= min(3, n)
        consistently_low = n > 0 and sum(1 for x in scores if x < 70) >= min(2, n)

        skill_map = await self.skill_tracker.get_user_skill_map(
            user_id, objective.required_skill_ids or None
        )
        required = set(objective.required_skill_ids)
        struggling = [
            area.skill_id
            for area in await self.skill_tracker.detect_struggling_areas(user_id)
            if not required or area.skill_id in required
        ]

        analysis = PerformanceAnalysis(
            objective_id=objective_id,
            average_score=average,
            trend=trend,
            recommended_action=action,
            scores=scores,
            consistently_high=consistently_high,
            consistently_low=consistently_low,
            struggling_skills=struggling,
            mastered_skills=[us.skill_id for us in skill_map.mastered],
        )
        logger.info(
            f"Performance for objective {objective_id}: avg={average:.1f} "
            f"trend={trend.value} action={action.value} ({n} sprints)"
        )
        return analysis

    async def recalibrate_learning_path(
        self,
        objective_id: str,
        analysis: PerformanceAnalysis | None = None,
    ) -> AdaptationDecision:
        """
        Apply one bounded pacing step based on ``analysis``.

        maintain leaves the objective untouched. Otherwise difficulty moves
        one step and velocity moves one velocity_step, both clamped; the new
        state is persisted and a difficulty notification emitted.
        """
        s = self.settings
        objective = await self._get_objective(objective_id)
        if analysis is None:
            analysis = await self.analyze_performance(objective.user_id, objective_id)

        action = analysis.recommended_action
        current_difficulty = objective.current_difficulty
        current_velocity = objective.learning_velocity

        if action == PacingAction.INCREASE:
            new_difficulty = min(s.max_difficulty, current_difficulty + s.difficulty_step)
            new_velocity = min(s.max_velocity, current_velocity + s.velocity_step)
            recommendations = [
                "Increase difficulty and pace",
                "Add more advanced concepts",
                "Skip redundant practice",
            ]
        elif action == PacingAction.DECREASE:
            new_difficulty = max(s.min_difficulty, current_difficulty - s.difficulty_step)
            new_velocity = max(s.min_velocity, current_velocity - s.velocity_step)
            recommendations = [
                "Decrease difficulty and slow down",
                "Add more examples and practice",
                "Review fundamentals",
            ]
        else:
            return AdaptationDecision(
                should_adjust=False,
                adjustment_type=PacingAction.MAINTAIN,
                new_difficulty=current_difficulty,
                new_velocity=current_velocity,
                reasoning=(
                    f"Average score {analysis.average_score:.1f} with {analysis.trend.value} "
                    "trend; maintaining current pace"
                ),
                recommendations=["Maintain current pace"],
            )

        new_velocity = round(new_velocity, 4)
        changed = new_difficulty != current_difficulty or new_velocity != current_velocity
        reasoning = (
            f"Average score {analysis.average_score:.1f} with {analysis.trend.value} trend: "
            f"{action.value} difficulty {current_difficulty} -> {new_difficulty}, "
            f"velocity {current_velocity:.2f} -> {new_velocity:.2f}"
        )
        if not changed:
            reasoning += " (already at bound)"

        remaining = _remaining_days(objective)
        days_change = 0
        if remaining:
            days_change = round(remaining / new_velocity) - round(remaining / current_velocity)

        decision = AdaptationDecision(
            should_adjust=changed,
            adjustment_type=action,
            new_difficulty=new_difficulty,
            new_velocity=new_velocity,
            reasoning=reasoning,
            recommendations=recommendations,
            estimated_days_change=days_change,
        )
        if not changed:
            return decision

        objective.current_difficulty = new_difficulty
        objective.learning_velocity = new_velocity
        objective.recalibration_count += 1
        objective.last_recalibrated_at = datetime.now(timezone.utc)
        await self.repository.update_objective(objective)
        logger.info(f"Recalibrated objective {objective_id}: {reasoning}")

        if self.notifier is not None:
            increased = action == PacingAction.INCREASE
            await self.notifier.emit(
                NotificationEvent(
                    type=EventType.DIFFICULTY_INCREASED if increased else EventType.DIFFICULTY_DECREASED,
                    title="Difficulty increased" if increased else "Difficulty decreased",
                    message=reasoning,
                    user_id=objective.user_id,
                    payload={
                        "objective_id": objective_id,
                        "difficulty": new_difficulty,
                        "velocity": new_velocity,
                    },
                )
            )
        return decision

    async def adjust_next_sprint_difficulty(
        self,
        objective_id: str,
        next_sprint_id: str,
        analysis: PerformanceAnalysis,
    ) -> DifficultyAdjustment:
        """
        Move the upcoming sprint's difficulty label from recent consistency.

        consistently_high raises it one step, consistently_low lowers it one
        step, anything else keeps it. The label never leaves
        beginner..advanced. The outcome and its reasons are stored on the
        sprint as ``adapted_from`` / ``adaptation_reason``.

        Raises:
            NotFoundError: sprint missing or not part of ``objective_id``
        """
        sprint = await self.repository.get_sprint(next_sprint_id)
        if sprint is None or sprint.objective_id != objective_id:
            raise NotFoundError(
                f"Sprint {next_sprint_id} not found", details={"sprint_id": next_sprint_id}
            )

        previous = sprint.difficulty
        index = DIFFICULTY_LADDER.index(previous) if previous in DIFFICULTY_LADDER else 0
        top = len(DIFFICULTY_LADDER) - 1

        if analysis.consistently_high and index < top:
            new_index = index + 1
            adjustment_type = "increased"
            adjustments = [
                "Increased complexity due to high performance",
                "Added advanced concepts",
                "Reduced basic explanations",
            ]
        elif analysis.consistently_low and not analysis.consistently_high and index > 0:
            new_index = index - 1
            adjustment_type = "decreased"
            adjustments = [
                "Decreased complexity due to struggling",
                "Added more examples and practice",
                "Broke down complex concepts",
            ]
        else:
            new_index = index
            adjustment_type = "maintained"
            adjustments = ["Maintained current difficulty level"]
            if analysis.consistently_high or analysis.consistently_low:
                adjustments.append(f"Already at {DIFFICULTY_LADDER[index]} difficulty")

        sprint.difficulty = DIFFICULTY_LADDER[new_index]
        sprint.adapted_from = adjustment_type
        sprint.adaptation_reason = "; ".join(adjustments)
        await self.repository.update_sprint(sprint)
        logger.info(
            f"Sprint {next_sprint_id} difficulty {adjustment_type}: "
            f"{previous} -> {sprint.difficulty}"
        )

        return DifficultyAdjustment(
            sprint=sprint,
            previous_difficulty=previous,
            new_difficulty=sprint.difficulty,
            adjustment_type=adjustment_type,
            adjustments=adjustments,
        )

    async def adjust_estimated_days(self, objective_id: str) -> EstimateAdjustment:
        """
        Re-estimate the objective's total days from its learning velocity.

        new total = completed_days + round(remaining_days / velocity)

        Raises:
            InvalidRequestError: objective has no estimated total days
        """
        objective = await self._get_objective(objective_id)
        if objective.estimated_total_days is None:
            raise InvalidRequestError(
                "Objective has no estimated duration",
                details={"objective_id": objective_id},
            )

        remaining = _remaining_days(objective)
        velocity = objective.learning_velocity
        new_total = objective.completed_days + round(remaining / velocity)
        previous_total = objective.estimated_total_days
        adjustment = new_total - (objective.completed_days + remaining)

        if velocity > 1:
            pace = "faster than planned"
        elif velocity < 1:
            pace = "slower than planned"
        else:
            pace = "on plan"
        reasoning = (
            f"Learning velocity {velocity:.2f} ({pace}): {remaining} remaining days "
            f"re-estimated as {new_total - objective.completed_days}"
        )

        if new_total != previous_total:
            objective.estimated_total_days = new_total
            await self.repository.update_objective(objective)
            logger.info(f"Objective {objective_id} estimate {previous_total} -> {new_total} days")

        return EstimateAdjustment(
            previous_total_days=previous_total,
            new_estimated_total_days=new_total,
            days_adjustment=adjustment,
            reasoning=reasoning,
        )
