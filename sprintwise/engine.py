"""
Progression engine - wires the components for a sprint completion event.

Flow for one completion:
    grading -> scoring -> skill update -> review scheduling ->
    performance analysis -> pacing recalibration -> next sprint (difficulty
    adapted to recent consistency) -> buffer

Components are constructed explicitly by ``build_engine`` and passed in;
nothing is a module-level singleton.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sprintwise.assessment import KnowledgeValidationService, QuizScore, QuizScorer
from sprintwise.config import Settings, get_settings
from sprintwise.core.errors import GenerationFailure, InvalidRequestError, NotFoundError
from sprintwise.core.events import LoggingNotificationSink, NotificationSink
from sprintwise.core.models import Sprint, SprintStatus
from sprintwise.core.repository import ProgressRepository
from sprintwise.db.database import get_session_factory
from sprintwise.db.repository import SqlAlchemyProgressRepository
from sprintwise.learning import (
    AdaptationDecision,
    DifficultyAdjustment,
    PerformanceAnalysis,
    PerformanceAnalyzer,
    ReviewDecision,
    SkillTracker,
    SkillUpdateResult,
    SpacedRepetitionScheduler,
)
from sprintwise.planning import FallbackPlanner, HttpPlanner, Planner, ResilientPlanner
from sprintwise.sequencing import SprintSequencer, get_generation_config


@dataclass
class SprintCompletionReport:
    """Everything that happened while processing one sprint completion."""

    sprint: Sprint
    quiz_result: QuizScore | None = None
    skill_updates: list[SkillUpdateResult] = field(default_factory=list)
    review_decision: ReviewDecision | None = None
    review_sprint: Sprint | None = None
    analysis: PerformanceAnalysis | None = None
    adaptation: AdaptationDecision | None = None
    next_sprint: Sprint | None = None
    difficulty_adjustment: DifficultyAdjustment | None = None
    buffer_sprints: list[Sprint] = field(default_factory=list)


class ProgressionEngine:
    """Facade over the grading, mastery, review, pacing and sequencing components."""

    def __init__(
        self,
        repository: ProgressRepository,
        validation: KnowledgeValidationService,
        skill_tracker: SkillTracker,
        scheduler: SpacedRepetitionScheduler,
        analyzer: PerformanceAnalyzer,
        sequencer: SprintSequencer,
    ):
        self.repository = repository
        self.validation = validation
        self.skill_tracker = skill_tracker
        self.scheduler = scheduler
        self.analyzer = analyzer
        self.sequencer = sequencer

    async def complete_sprint(
        self,
        user_id: str,
        sprint_id: str,
        quiz_id: str | None = None,
        answers: Mapping[str, Any] | None = None,
        elapsed_seconds: float = 0.0,
        current_day: int | None = None,
        score: float | None = None,
        reflection: str | None = None,
    ) -> SprintCompletionReport:
        """
        Process a sprint completion end to end.

        Args:
            user_id: Learner completing the sprint
            sprint_id: Sprint being completed
            quiz_id: Post-sprint quiz to grade (its score becomes the sprint score)
            answers: question_id -> answer for ``quiz_id``
            elapsed_seconds: Time spent on the quiz
            current_day: Objective day for review scheduling (defaults to the sprint's day)
            score: Sprint score when no quiz is graded
            reflection: Learner reflection carried into the next plan

        Returns:
            SprintCompletionReport

        Raises:
            NotFoundError: sprint or objective missing, or owned by another user
            InvalidRequestError: neither quiz nor score given, or attempts exhausted
        """
        sprint = await self.repository.get_sprint(sprint_id)
        if sprint is None:
            raise NotFoundError(f"Sprint {sprint_id} not found", details={"sprint_id": sprint_id})
        objective = await self.repository.get_objective(sprint.objective_id)
        if objective is None or objective.user_id != user_id:
            raise NotFoundError(
                f"Objective {sprint.objective_id} not found",
                details={"objective_id": sprint.objective_id},
            )
        if quiz_id is None and score is None:
            raise InvalidRequestError("Either a quiz submission or a score is required")

        day = current_day if current_day is not None else sprint.day_number
        report = SprintCompletionReport(sprint=sprint)

        # 1-2. Grade and score
        if quiz_id is not None:
            attempt = await self.validation.submit_quiz_attempt(
                user_id, quiz_id, answers or {}, elapsed_seconds
            )
            report.quiz_result = attempt.result
            sprint_score = attempt.result.score
            skill_scores = dict(attempt.result.skill_scores)
        else:
            sprint_score = min(100.0, max(0.0, float(score)))
            skill_scores = {skill_id: sprint_score for skill_id in sprint.target_skill_ids}

        # Mark the sprint complete; completed_days only moves on the first completion
        first_completion = not sprint.is_completed
        now = datetime.now(timezone.utc)
        sprint.status = SprintStatus.COMPLETED
        sprint.completion_percentage = 100.0
        sprint.score = sprint_score
        sprint.completed_at = sprint.completed_at or now
        sprint.started_at = sprint.started_at or now
        if reflection is not None:
            sprint.reflection = reflection
        await self.repository.update_sprint(sprint)
        if first_completion:
            objective.completed_days += 1
            await self.repository.update_objective(objective)

        # 3. Skill updates; 4. review schedules
        for skill_id, skill_score in skill_scores.items():
            update = await self.skill_tracker.update_skill(user_id, skill_id, skill_score)
            report.skill_updates.append(update)
            schedule = None
            if not update.first_assessment:
                schedule = await self.repository.get_review_schedule(user_id, skill_id)
            if schedule is None:
                await self.scheduler.schedule_skill_review(user_id, skill_id, update.new_level, day)
            elif schedule.next_review_due_day <= day:
                await self.scheduler.update_review_schedule(user_id, skill_id, skill_score, day)

        report.review_decision = await self.scheduler.should_insert_review_sprint(
            objective.id, user_id, day
        )
        if report.review_decision.should_insert and not await self._review_pending(
            objective.id, sprint.day_number
        ):
            report.review_sprint = await self.sequencer.generate_review_sprint(
                objective.id, user_id, report.review_decision.skills_to_review
            )

        # 5-6. Performance and pacing
        report.analysis = await self.analyzer.analyze_performance(user_id, objective.id)
        report.adaptation = await self.analyzer.recalibrate_learning_path(
            objective.id, report.analysis
        )

        # 7. Next sprint and look-ahead buffer
        config = get_generation_config(objective.sprint_generation_mode)
        if config.generate_on_completion:
            check = await self.sequencer.should_generate_next(objective.id, sprint.id)
            if check.should_generate:
                try:
                    report.next_sprint = await self.sequencer.generate_next_sprint(
                        objective.id, user_id
                    )
                except GenerationFailure as e:
                    logger.error(f"Next sprint generation failed for {objective.id}: {e.message}")
        if report.next_sprint is not None and not report.next_sprint.is_completed:
            report.difficulty_adjustment = await self.analyzer.adjust_next_sprint_difficulty(
                objective.id, report.next_sprint.id, report.analysis
            )
            report.next_sprint = report.difficulty_adjustment.sprint
        report.buffer_sprints = await self.sequencer.maintain_sprint_buffer(objective.id)

        logger.info(
            f"Sprint {sprint_id} completed: score={sprint_score:.1f}, "
            f"{len(report.skill_updates)} skills updated, "
            f"pacing={report.adaptation.adjustment_type.value}"
        )
        return report

    async def _review_pending(self, objective_id: str, after_day: int) -> bool:
        """True when an uncompleted review sprint is already scheduled after ``after_day``."""
        upcoming = await self.repository.list_recent_sprints(
            objective_id, self.sequencer.settings.max_batch_size
        )
        return any(
            s.is_review_sprint and not s.is_completed and s.day_number > after_day
            for s in upcoming
        )


def build_planner(settings: Settings) -> Planner:
    """
    Remote planner with heuristic fallback when a URL is configured, else heuristic only.

    The remote planner gets ``planner_primary_budget_ratio`` of the sequencer's
    planner timeout, split across its retry attempts, so the heuristic plan
    always has time to run inside the outer limit.
    """
    if not settings.planner_url:
        return FallbackPlanner()
    primary_budget = settings.planner_timeout_seconds * settings.planner_primary_budget_ratio
    return ResilientPlanner(
        primary=HttpPlanner(
            settings.planner_url,
            timeout_seconds=primary_budget / settings.planner_retry_attempts,
            retry_attempts=settings.planner_retry_attempts,
        ),
        fallback=FallbackPlanner(),
        timeout_seconds=primary_budget,
    )


def build_engine(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    planner: Planner | None = None,
    notifier: NotificationSink | None = None,
    repository: ProgressRepository | None = None,
) -> ProgressionEngine:
    """
    Construct a fully wired engine.

    Args:
        settings: Defaults to get_settings()
        session_factory: Used to build the SQLAlchemy repository when none is given
        planner: Defaults to build_planner(settings)
        notifier: Defaults to LoggingNotificationSink
        repository: Overrides the SQLAlchemy repository (tests pass an in-memory one)
    """
    settings = settings or get_settings()
    if repository is None:
        if session_factory is None:
            session_factory = get_session_factory(settings)
        repository = SqlAlchemyProgressRepository(session_factory)
    notifier = notifier or LoggingNotificationSink()
    planner = planner or build_planner(settings)

    skill_tracker = SkillTracker(repository, settings, notifier)
    return ProgressionEngine(
        repository=repository,
        validation=KnowledgeValidationService(
            repository, QuizScorer(weak_area_threshold=settings.weak_area_threshold)
        ),
        skill_tracker=skill_tracker,
        scheduler=SpacedRepetitionScheduler(repository, skill_tracker, settings, notifier),
        analyzer=PerformanceAnalyzer(repository, skill_tracker, settings, notifier),
        sequencer=SprintSequencer(repository, planner, settings, notifier),
    )
