"""
Spaced repetition scheduling for previously taught skills.

Uses an SM-2 style ease factor. A review counts as a success when the
score reaches ``review_pass_score`` (70 by default):

- success: ease' = clamp(ease + adjustment(q)), with q = score / 20 and
  adjustment(q) = 0.1 - (5 - q) * (0.08 + (5 - q) * 0.02);
  interval' = max(interval + 1, round(interval * ease'))
- failure: interval' = 1, ease' = max(min_ease, ease - 0.2), count reset

Days are objective-relative day numbers, not calendar dates.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from loguru import logger

from sprintwise.config import Settings, get_settings
from sprintwise.core.errors import NotFoundError
from sprintwise.core.events import EventType, NotificationEvent, NotificationSink
from sprintwise.core.models import ReviewSchedule, SkillStatus
from sprintwise.core.repository import ProgressRepository
from sprintwise.learning.skill_tracker import SkillTracker


@dataclass
class ReviewDecision:
    should_insert: bool
    reason: str
    skills_to_review: list[str] = field(default_factory=list)


@dataclass
class DueReview:
    skill_id: str
    next_review_due_day: int
    days_overdue: int
    interval_days: int
    review_count: int


@dataclass
class ReviewRecommendation:
    type: str  # spaced_repetition | struggling_skill
    skill_ids: list[str]
    priority: str  # high | medium | low
    reason: str


def ease_adjustment(score: float) -> float:
    """SM-2 ease delta for a 0-100 score mapped to quality 0-5."""
    quality = min(5.0, max(0.0, score / 20.0))
    return 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)


class SpacedRepetitionScheduler:
    """Create and advance review schedules; decide when to insert review sprints."""

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

    async def schedule_skill_review(
        self,
        user_id: str,
        skill_id: str,
        initial_mastery_level: float,
        current_day: int,
    ) -> ReviewSchedule:
        """
        Create the first review schedule for a skill.

        Returns the existing schedule unchanged if one already exists.
        """
        existing = await self.repository.get_review_schedule(user_id, skill_id)
        if existing is not None:
            return existing

        schedule = ReviewSchedule(
            user_id=user_id,
            skill_id=skill_id,
            next_review_due_day=current_day + 1,
            interval_days=1,
            ease_factor=self.settings.default_ease_factor,
            review_count=0,
        )
        await self.repository.save_review_schedule(schedule)
        logger.debug(
            f"Scheduled first review of {skill_id} for {user_id} on day {current_day + 1} "
            f"(initial level {initial_mastery_level:.1f})"
        )
        return schedule

    async def update_review_schedule(
        self,
        user_id: str,
        skill_id: str,
        review_score: float,
        current_day: int,
    ) -> ReviewSchedule:
        """
        Advance a schedule after a review.

        Raises:
            NotFoundError: no schedule exists for (user_id, skill_id)
        """
        schedule = await self.repository.get_review_schedule(user_id, skill_id)
        if schedule is None:
            raise NotFoundError(
                f"No review schedule for skill {skill_id}",
                details={"user_id": user_id, "skill_id": skill_id},
            )

        s = self.settings
        previous_count = schedule.review_count

        if review_score >= s.review_pass_score:
            ease = schedule.ease_factor + ease_adjustment(review_score)
            schedule.ease_factor = min(s.max_ease_factor, max(s.min_ease_factor, ease))
            interval = max(
                schedule.interval_days + 1,
                round(schedule.interval_days * schedule.ease_factor),
            )
            schedule.interval_days = min(interval, s.max_review_interval_days)
            schedule.review_count += 1
        else:
            schedule.interval_days = 1
            schedule.ease_factor = max(
                s.min_ease_factor, schedule.ease_factor - s.ease_failure_penalty
            )
            schedule.review_count = 0

        schedule.next_review_due_day = current_day + schedule.interval_days
        schedule.last_score = review_score
        schedule.average_review_score = (
            schedule.average_review_score * previous_count + review_score
        ) / (previous_count + 1)
        schedule.is_retained = schedule.average_review_score >= 80 and schedule.review_count >= 2

        await self.repository.save_review_schedule(schedule)
        logger.debug(
            f"Review of {skill_id} for {user_id}: score={review_score:.1f} "
            f"interval={schedule.interval_days} ease={schedule.ease_factor:.2f}"
        )
        return schedule

    async def get_skills_due_for_review(
        self,
        user_id: str,
        current_day: int,
        objective_id: str | None = None,
    ) -> list[DueReview]:
        """
        Schedules due on or before ``current_day``, most overdue first.

        With ``objective_id``, only that objective's required skills are listed.
        """
        skill_ids = None
        if objective_id is not None:
            objective = await self.repository.get_objective(objective_id)
            if objective is None:
                raise NotFoundError(
                    f"Objective {objective_id} not found", details={"objective_id": objective_id}
                )
            skill_ids = objective.required_skill_ids
        return await self._due_reviews(user_id, current_day, skill_ids)

    async def _due_reviews(
        self,
        user_id: str,
        current_day: int,
        skill_ids: Sequence[str] | None,
    ) -> list[DueReview]:
        allowed = set(skill_ids) if skill_ids is not None else None
        due = [
            DueReview(
                skill_id=schedule.skill_id,
                next_review_due_day=schedule.next_review_due_day,
                days_overdue=current_day - schedule.next_review_due_day,
                interval_days=schedule.interval_days,
                review_count=schedule.review_count,
            )
            for schedule in await self.repository.list_review_schedules(user_id)
            if schedule.next_review_due_day <= current_day
            and (allowed is None or schedule.skill_id in allowed)
        ]
        return sorted(due, key=lambda item: item.days_overdue, reverse=True)

    async def get_review_recommendations(
        self,
        user_id: str,
        objective_id: str,
        current_day: int | None = None,
    ) -> list[ReviewRecommendation]:
        """
        Prioritized review suggestions for an objective's required skills.

        Due schedules yield one spaced_repetition item: high priority with
        three or more overdue skills, medium with any overdue, low otherwise.
        Struggling skills yield one high-priority struggling_skill item.

        Args:
            user_id: Learner
            objective_id: Objective whose required skills are considered
            current_day: Defaults to the objective's current day
        """
        objective = await self.repository.get_objective(objective_id)
        if objective is None:
            raise NotFoundError(
                f"Objective {objective_id} not found", details={"objective_id": objective_id}
            )
        day = current_day if current_day is not None else objective.current_day
        required = set(objective.required_skill_ids)
        recommendations: list[ReviewRecommendation] = []

        due = await self._due_reviews(user_id, day, objective.required_skill_ids)
        if due:
            overdue = sum(1 for item in due if item.days_overdue > 0)
            if overdue >= 3:
                priority = "high"
            elif overdue > 0:
                priority = "medium"
            else:
                priority = "low"
            recommendations.append(
                ReviewRecommendation(
                    type="spaced_repetition",
                    skill_ids=[item.skill_id for item in due],
                    priority=priority,
                    reason=f"{len(due)} skills need review ({overdue} overdue)",
                )
            )

        struggling = [
            area.skill_id
            for area in await self.skill_tracker.detect_struggling_areas(user_id)
            if area.skill_id in required
        ]
        if struggling:
            recommendations.append(
                ReviewRecommendation(
                    type="struggling_skill",
                    skill_ids=struggling,
                    priority="high",
                    reason=f"{len(struggling)} skills need extra practice",
                )
            )
        return recommendations

    async def should_insert_review_sprint(
        self,
        objective_id: str,
        user_id: str,
        current_day: int,
    ) -> ReviewDecision:
        """
        Decide whether a review sprint should be inserted.

        A required skill needs review when its schedule is due and it is
        not mastered, or when its level history shows a declining trend.
        """
        objective = await self.repository.get_objective(objective_id)
        if objective is None:
            raise NotFoundError(
                f"Objective {objective_id} not found", details={"objective_id": objective_id}
            )

        required = list(dict.fromkeys(objective.required_skill_ids))
        if not required:
            return ReviewDecision(should_insert=False, reason="Objective has no required skills")

        due_ids = {
            item.skill_id
            for item in await self._due_reviews(user_id, current_day, required)
        }
        user_skills = {
            us.skill_id: us for us in await self.repository.list_user_skills(user_id, required)
        }

        due_skills: list[str] = []
        declining_skills: list[str] = []
        for skill_id in required:
            user_skill = user_skills.get(skill_id)
            mastered = user_skill is not None and user_skill.status == SkillStatus.MASTERED
            if skill_id in due_ids and not mastered:
                due_skills.append(skill_id)
            elif user_skill is not None and self.skill_tracker.is_declining(user_skill):
                declining_skills.append(skill_id)

        if not due_skills and not declining_skills:
            return ReviewDecision(should_insert=False, reason="No skills need review")

        parts = []
        if due_skills:
            parts.append(f"{len(due_skills)} skills are due for review")
        if declining_skills:
            parts.append(f"{len(declining_skills)} skills show declining mastery")
        decision = ReviewDecision(
            should_insert=True,
            reason="; ".join(parts),
            skills_to_review=due_skills + declining_skills,
        )

        if self.notifier is not None:
            await self.notifier.emit(
                NotificationEvent(
                    type=EventType.REVIEW_NEEDED,
                    title="Time to review",
                    message=decision.reason,
                    user_id=user_id,
                    payload={
                        "objective_id": objective_id,
                        "skill_ids": decision.skills_to_review,
                        "current_day": current_day,
                    },
                )
            )
        return decision
