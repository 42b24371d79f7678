"""
Shared fakes for unit tests.

InMemoryProgressRepository mirrors the SQLAlchemy repository contract:
it hands out copies, rejects duplicate sprint days and links neighbours
when a generated sprint is recorded.
"""

import asyncio
import copy
from collections.abc import Sequence

import pytest

from sprintwise.core.errors import DuplicateSprintError, NotFoundError, PersistenceError
from sprintwise.core.events import NotificationEvent
from sprintwise.core.models import (
    LearnerProfile,
    Milestone,
    Objective,
    Quiz,
    QuizAttempt,
    ReviewSchedule,
    Skill,
    Sprint,
    UserSkill,
)
from sprintwise.planning.planner import FallbackPlanner


class InMemoryProgressRepository:
    """Dict-backed ProgressRepository for unit tests."""

    def __init__(self):
        self.objectives: dict[str, Objective] = {}
        self.profiles: dict[str, LearnerProfile] = {}
        self.milestones: dict[str, Milestone] = {}
        self.skills: dict[str, Skill] = {}
        self.user_skills: dict[tuple[str, str], UserSkill] = {}
        self.schedules: dict[tuple[str, str], ReviewSchedule] = {}
        self.quizzes: dict[str, Quiz] = {}
        self.attempts: list[QuizAttempt] = []
        self.sprints: dict[str, Sprint] = {}
        self.fail_persistence = False

    # Seeding -----------------------------------------------------------------

    def add_objective(self, objective: Objective) -> Objective:
        self.objectives[objective.id] = copy.deepcopy(objective)
        return objective

    def add_profile(self, profile: LearnerProfile) -> LearnerProfile:
        self.profiles[profile.user_id] = copy.deepcopy(profile)
        return profile

    def add_skill(self, skill: Skill) -> Skill:
        self.skills[skill.id] = skill
        return skill

    def add_quiz(self, quiz: Quiz) -> Quiz:
        self.quizzes[quiz.id] = copy.deepcopy(quiz)
        return quiz

    def add_sprint(self, sprint: Sprint) -> Sprint:
        self.sprints[sprint.id] = copy.deepcopy(sprint)
        return sprint

    def add_milestone(self, milestone: Milestone) -> Milestone:
        self.milestones[milestone.id] = copy.deepcopy(milestone)
        return milestone

    def _check(self):
        if self.fail_persistence:
            raise PersistenceError("Database unavailable")

    def _objective_sprints(self, objective_id: str) -> list[Sprint]:
        return sorted(
            (s for s in self.sprints.values() if s.objective_id == objective_id),
            key=lambda s: s.day_number,
        )

    # Objectives + profiles ---------------------------------------------------

    async def get_objective(self, objective_id: str):
        self._check()
        return copy.deepcopy(self.objectives.get(objective_id))

    async def update_objective(self, objective: Objective):
        self._check()
        if objective.id not in self.objectives:
            raise NotFoundError(f"Objective {objective.id} not found")
        self.objectives[objective.id] = copy.deepcopy(objective)

    async def get_learner_profile(self, user_id: str):
        self._check()
        return copy.deepcopy(self.profiles.get(user_id))

    async def get_next_incomplete_milestone(self, objective_id: str):
        pending = sorted(
            (
                m
                for m in self.milestones.values()
                if m.objective_id == objective_id and not m.is_completed
            ),
            key=lambda m: m.target_day,
        )
        return copy.deepcopy(pending[0]) if pending else None

    # Skills ------------------------------------------------------------------

    async def get_skills(self, skill_ids: Sequence[str]):
        return [self.skills[sid] for sid in dict.fromkeys(skill_ids) if sid in self.skills]

    async def get_user_skill(self, user_id: str, skill_id: str):
        return copy.deepcopy(self.user_skills.get((user_id, skill_id)))

    async def list_user_skills(self, user_id: str, skill_ids: Sequence[str] | None = None):
        wanted = set(skill_ids) if skill_ids is not None else None
        return [
            copy.deepcopy(us)
            for (uid, sid), us in sorted(self.user_skills.items())
            if uid == user_id and (wanted is None or sid in wanted)
        ]

    async def save_user_skill(self, user_skill: UserSkill):
        # Yield so concurrent updates interleave the way real I/O would
        await asyncio.sleep(0)
        self.user_skills[(user_skill.user_id, user_skill.skill_id)] = copy.deepcopy(user_skill)

    # Review schedules --------------------------------------------------------

    async def get_review_schedule(self, user_id: str, skill_id: str):
        return copy.deepcopy(self.schedules.get((user_id, skill_id)))

    async def list_review_schedules(self, user_id: str):
        return [
            copy.deepcopy(s)
            for (uid, _), s in self.schedules.items()
            if uid == user_id
        ]

    async def save_review_schedule(self, schedule: ReviewSchedule):
        self.schedules[(schedule.user_id, schedule.skill_id)] = copy.deepcopy(schedule)

    # Quizzes -----------------------------------------------------------------

    async def get_quiz(self, quiz_id: str):
        return copy.deepcopy(self.quizzes.get(quiz_id))

    async def list_sprint_quizzes(self, sprint_id: str):
        return [copy.deepcopy(q) for q in self.quizzes.values() if q.sprint_id == sprint_id]

    async def list_quiz_attempts(self, quiz_id: str, user_id: str):
        await asyncio.sleep(0)
        return [
            copy.deepcopy(a)
            for a in self.attempts
            if a.quiz_id == quiz_id and a.user_id == user_id
        ]

    async def save_quiz_attempt(self, attempt: QuizAttempt):
        self.attempts.append(copy.deepcopy(attempt))

    # Sprints -----------------------------------------------------------------

    async def get_sprint(self, sprint_id: str):
        return copy.deepcopy(self.sprints.get(sprint_id))

    async def get_sprint_by_day(self, objective_id: str, day_number: int):
        self._check()
        for sprint in self.sprints.values():
            if sprint.objective_id == objective_id and sprint.day_number == day_number:
                return copy.deepcopy(sprint)
        return None

    async def get_last_sprint(self, objective_id: str):
        self._check()
        sprints = self._objective_sprints(objective_id)
        return copy.deepcopy(sprints[-1]) if sprints else None

    async def list_recent_sprints(self, objective_id: str, limit: int):
        sprints = self._objective_sprints(objective_id)
        return [copy.deepcopy(s) for s in reversed(sprints)][:limit]

    async def list_recent_scored_sprints(self, objective_id: str, limit: int):
        scored = [
            s for s in self._objective_sprints(objective_id) if s.is_completed and s.score is not None
        ]
        return [copy.deepcopy(s) for s in reversed(scored)][:limit]

    async def update_sprint(self, sprint: Sprint):
        if sprint.id not in self.sprints:
            raise NotFoundError(f"Sprint {sprint.id} not found")
        self.sprints[sprint.id] = copy.deepcopy(sprint)

    async def record_generated_sprint(self, sprint: Sprint):
        self._check()
        objective = self.objectives.get(sprint.objective_id)
        if objective is None:
            raise NotFoundError(f"Objective {sprint.objective_id} not found")
        existing = self._objective_sprints(sprint.objective_id)
        if any(s.day_number == sprint.day_number for s in existing):
            raise DuplicateSprintError(sprint.objective_id, sprint.day_number)

        stored = copy.deepcopy(sprint)
        earlier = [s for s in existing if s.day_number < sprint.day_number]
        later = [s for s in existing if s.day_number > sprint.day_number]
        if earlier:
            earlier[-1].next_sprint_id = stored.id
        if later:
            stored.next_sprint_id = later[0].id
        self.sprints[stored.id] = stored

        objective.current_day = max(objective.current_day, sprint.day_number)
        objective.total_sprints_generated += 1
        return copy.deepcopy(stored)


class CollectingNotificationSink:
    """Records emitted events."""

    def __init__(self):
        self.events: list[NotificationEvent] = []

    async def emit(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type) -> list[NotificationEvent]:
        return [e for e in self.events if e.type == event_type]


class RecordingPlanner(FallbackPlanner):
    """Heuristic planner that records every context it is given."""

    def __init__(self, delay: float = 0.0, fail_on_days: Sequence[int] = ()):
        self.contexts = []
        self.delay = delay
        self.fail_on_days = set(fail_on_days)

    async def generate_plan(self, context):
        self.contexts.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        if context.day_number in self.fail_on_days:
            raise RuntimeError(f"planner exploded on day {context.day_number}")
        return self.build_plan(context)


@pytest.fixture
def repo():
    return InMemoryProgressRepository()


@pytest.fixture
def notifier():
    return CollectingNotificationSink()


@pytest.fixture
def planner():
    return RecordingPlanner()


@pytest.fixture
def user_id():
    return "user-1"


@pytest.fixture
def skills(repo):
    return [
        repo.add_skill(Skill(id="py", name="Python")),
        repo.add_skill(Skill(id="sql", name="SQL")),
        repo.add_skill(Skill(id="git", name="Git")),
    ]


@pytest.fixture
def profile(repo, user_id):
    return repo.add_profile(
        LearnerProfile(
            id="profile-1",
            user_id=user_id,
            strengths=["testing"],
            gaps=["databases"],
            interests=["web apps"],
            goals=["ship a project"],
            hours_per_week=14.0,
        )
    )


@pytest.fixture
def objective(repo, user_id, skills):
    return repo.add_objective(
        Objective(
            id="obj-1",
            user_id=user_id,
            title="Backend fundamentals",
            required_skill_ids=[s.id for s in skills],
            estimated_total_days=30,
        )
    )


@pytest.fixture
def make_planner():
    """Factory for RecordingPlanner with a delay or failing days."""
    return RecordingPlanner
