"""
Skill Mastery Tracker with an exponentially weighted level update.

Each observed score (0-100) is folded into the learner's level:

    new_level = clamp(0, 100, prior * 0.7 + observed * 0.3)

Status is a deterministic function of the level. Updates for one
(user, skill) pair are serialized; different pairs run concurrently.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from loguru import logger

from sprintwise.config import Settings, get_settings
from sprintwise.core.errors import InvalidRequestError
from sprintwise.core.events import EventType, NotificationEvent, NotificationSink
from sprintwise.core.locks import KeyedLock
from sprintwise.core.models import SkillStatus, UserSkill
from sprintwise.core.repository import ProgressRepository


@dataclass
class SkillUpdateResult:
    """Result of one skill level update."""

    skill_id: str
    previous_level: float
    new_level: float
    previous_status: SkillStatus
    new_status: SkillStatus
    status_changed: bool
    mastered_now: bool
    first_assessment: bool = False


@dataclass
class SkillMap:
    """A learner's skills grouped by status."""

    mastered: list[UserSkill] = field(default_factory=list)
    in_progress: list[UserSkill] = field(default_factory=list)
    not_started: list[UserSkill] = field(default_factory=list)
    overall_progress: float = 0.0  # mean level across all listed skills


@dataclass
class StrugglingArea:
    skill_id: str
    skill_name: str
    level: float
    success_rate: float
    consecutive_failures: int
    recommended_action: str


def status_for_level(level: float, settings: Settings) -> SkillStatus:
    """Map a 0-100 level to a status using the configured thresholds."""
    if level >= settings.mastered_threshold:
        return SkillStatus.MASTERED
    if level >= settings.proficient_threshold:
        return SkillStatus.PROFICIENT
    if level >= settings.developing_threshold:
        return SkillStatus.DEVELOPING
    return SkillStatus.NOT_STARTED


def fold_level(previous: float, observed: float, prior_weight: float = 0.7) -> float:
    """EWMA fold of one observation into the previous level, clamped to [0, 100]."""
    new_level = previous * prior_weight + observed * (1.0 - prior_weight)
    return min(100.0, max(0.0, new_level))


def recommended_action(user_skill: UserSkill) -> str:
    if user_skill.consecutive_failures >= 3:
        return "Immediate review sprint required - Multiple consecutive failures detected"
    if user_skill.success_rate < 0.5:
        return "Revisit fundamentals - Success rate below 50%"
    if user_skill.level < 30:
        return "Additional practice needed - Skill level too low"
    return "Review and practice - Struggling detected"


class SkillTracker:
    """
    Track per-user skill mastery.

    The tracker is the only writer of UserSkill records.
    """

    def __init__(
        self,
        repository: ProgressRepository,
        settings: Settings | None = None,
        notifier: NotificationSink | None = None,
    ):
        """
        Initialize tracker.

        Args:
            repository: Persistence for UserSkill records
            settings: Thresholds and weights (defaults to get_settings())
            notifier: Receives skill_mastered events
        """
        self.repository = repository
        self.settings = settings or get_settings()
        self.notifier = notifier
        self._locks = KeyedLock()

    async def update_skill(
        self,
        user_id: str,
        skill_id: str,
        observed_score: float,
        now: datetime | None = None,
    ) -> SkillUpdateResult:
        """
        Fold one observed score into the learner's level.

        Args:
            user_id: Learner
            skill_id: Skill the evidence is about
            observed_score: 0-100; infinities are clamped, NaN is rejected
            now: Assessment timestamp (defaults to current UTC time)

        Returns:
            SkillUpdateResult describing the transition

        Raises:
            InvalidRequestError: observed_score is NaN
        """
        if math.isnan(observed_score):
            raise InvalidRequestError(
                "Observed score must be a number",
                details={"user_id": user_id, "skill_id": skill_id},
            )
        observed = min(100.0, max(0.0, float(observed_score)))
        now = now or datetime.now(timezone.utc)

        async with self._locks.hold((user_id, skill_id)):
            user_skill = await self.repository.get_user_skill(user_id, skill_id)
            first_assessment = user_skill is None
            if user_skill is None:
                user_skill = UserSkill(user_id=user_id, skill_id=skill_id)

            previous_level = user_skill.level
            previous_status = user_skill.status
            new_level = fold_level(previous_level, observed, self.settings.skill_prior_weight)
            new_status = status_for_level(new_level, self.settings)
            mastered_now = (
                previous_status != SkillStatus.MASTERED and new_status == SkillStatus.MASTERED
            )

            attempts = user_skill.practice_count + 1
            user_skill.success_rate = (
                user_skill.success_rate * user_skill.practice_count + observed / 100.0
            ) / attempts
            user_skill.practice_count = attempts
            if observed < self.settings.skill_failure_score:
                user_skill.consecutive_failures += 1
            else:
                user_skill.consecutive_failures = 0

            user_skill.level = new_level
            user_skill.status = new_status
            user_skill.last_assessed_at = now
            if mastered_now:
                user_skill.mastered_at = now
            user_skill.level_history = (user_skill.level_history + [new_level])[
                -self.settings.skill_history_size :
            ]

            await self.repository.save_user_skill(user_skill)

        result = SkillUpdateResult(
            skill_id=skill_id,
            previous_level=previous_level,
            new_level=new_level,
            previous_status=previous_status,
            new_status=new_status,
            status_changed=previous_status != new_status,
            mastered_now=mastered_now,
            first_assessment=first_assessment,
        )

        logger.debug(
            f"Skill {skill_id} for {user_id}: {previous_level:.1f} -> {new_level:.1f} "
            f"({new_status.value})"
        )

        if mastered_now and self.notifier is not None:
            await self.notifier.emit(
                NotificationEvent(
                    type=EventType.SKILL_MASTERED,
                    title="Skill mastered",
                    message=f"You mastered skill {skill_id}",
                    user_id=user_id,
                    payload={"skill_id": skill_id, "level": new_level},
                )
            )

        return result

    async def update_skills_from_scores(
        self,
        user_id: str,
        skill_scores: Mapping[str, float],
        now: datetime | None = None,
    ) -> list[SkillUpdateResult]:
        """Fold a per-skill score breakdown (e.g. from a quiz) one skill at a time."""
        results = []
        for skill_id, score in skill_scores.items():
            results.append(await self.update_skill(user_id, skill_id, score, now=now))
        return results

    async def get_user_skill_map(
        self, user_id: str, skill_ids: Sequence[str] | None = None
    ) -> SkillMap:
        """
        Group a learner's skills by status.

        Requested skills with no evidence yet are listed as not started.
        """
        user_skills = await self.repository.list_user_skills(user_id, skill_ids)
        if skill_ids is not None:
            known = {us.skill_id for us in user_skills}
            user_skills = user_skills + [
                UserSkill(user_id=user_id, skill_id=skill_id)
                for skill_id in dict.fromkeys(skill_ids)
                if skill_id not in known
            ]

        skill_map = SkillMap()
        for user_skill in user_skills:
            if user_skill.status == SkillStatus.MASTERED:
                skill_map.mastered.append(user_skill)
            elif user_skill.status == SkillStatus.NOT_STARTED:
                skill_map.not_started.append(user_skill)
            else:
                skill_map.in_progress.append(user_skill)

        if user_skills:
            skill_map.overall_progress = sum(us.level for us in user_skills) / len(user_skills)
        return skill_map

    async def detect_struggling_areas(self, user_id: str) -> list[StrugglingArea]:
        """Skills with two or more consecutive failures or a success rate under 70%."""
        struggling = [
            us
            for us in await self.repository.list_user_skills(user_id)
            if us.practice_count > 0 and (us.consecutive_failures >= 2 or us.success_rate < 0.7)
        ]
        if not struggling:
            return []

        names = {
            skill.id: skill.name
            for skill in await self.repository.get_skills([us.skill_id for us in struggling])
        }
        return [
            StrugglingArea(
                skill_id=us.skill_id,
                skill_name=names.get(us.skill_id, us.skill_id),
                level=us.level,
                success_rate=us.success_rate,
                consecutive_failures=us.consecutive_failures,
                recommended_action=recommended_action(us),
            )
            for us in struggling
        ]

    def is_declining(self, user_skill: UserSkill) -> bool:
        """
        True when the last ``skill_trend_window`` levels strictly decrease
        and the total drop exceeds ``skill_decline_threshold``.
        """
        window = user_skill.level_history[-self.settings.skill_trend_window :]
        if len(window) < self.settings.skill_trend_window:
            return False
        strictly_decreasing = all(a > b for a, b in zip(window, window[1:]))
        return strictly_decreasing and window[0] - window[-1] > self.settings.skill_decline_threshold
