"""
Unit tests for the planning package.

Tests:
- SprintPlan validation (camelCase payloads, unusable plans)
- Planner context assembly and reflection normalization
- Heuristic duration estimate and deterministic fallback plan
- HttpPlanner retry behaviour against a mocked transport
- ResilientPlanner fallback
"""

import asyncio

import httpx
import pytest
from pydantic import ValidationError

from sprintwise.core.errors import GenerationFailure
from sprintwise.core.models import Sprint, SprintStatus
from sprintwise.planning import (
    CONTEXT_SCHEMA_VERSION,
    FallbackPlanner,
    HttpPlanner,
    ResilientPlanner,
    SprintPlan,
    build_planner_context,
    estimate_duration,
    normalize_reflection,
)

PLAN_PAYLOAD = {
    "plan": {
        "title": "Day 1: Build a REST endpoint",
        "description": "Ship one endpoint with tests.",
        "totalEstimatedHours": 2.5,
        "difficulty": "intermediate",
        "microTasks": [
            {
                "title": "Build the endpoint",
                "estimatedMinutes": 90,
                "completionCriteria": ["Endpoint returns 200", "Test passes"],
                "skillIds": ["py"],
            }
        ],
    }
}


@pytest.fixture
def context(objective, profile, skills):
    return build_planner_context(objective, profile, day_number=1, previous_sprints=[], skills=skills)


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    """Skip retry sleeps; record requested delays."""
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr("sprintwise.planning.planner.asyncio.sleep", fake_sleep)
    return delays


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestSprintPlan:
    """Tests for plan validation."""

    def test_camel_case_payload(self):
        plan = SprintPlan.model_validate(PLAN_PAYLOAD["plan"])
        assert plan.total_estimated_hours == 2.5
        assert plan.micro_tasks[0].estimated_minutes == 90
        assert plan.deliverables == ["Endpoint returns 200", "Test passes"]
        assert plan.to_record()["micro_tasks"][0]["skill_ids"] == ["py"]

    def test_rejects_plan_without_tasks(self):
        with pytest.raises(ValidationError):
            SprintPlan(title="x", total_estimated_hours=1, difficulty="beginner", micro_tasks=[])

    def test_rejects_zero_hours(self):
        with pytest.raises(ValidationError):
            SprintPlan.model_validate({**PLAN_PAYLOAD["plan"], "totalEstimatedHours": 0})

    def test_rejects_blank_completion_criteria(self):
        payload = {
            **PLAN_PAYLOAD["plan"],
            "microTasks": [{"title": "t", "completionCriteria": ["  "]}],
        }
        with pytest.raises(ValidationError):
            SprintPlan.model_validate(payload)


class TestPlannerContext:
    """Tests for context assembly."""

    def test_schema_version_and_summaries(self, context):
        assert context.schema_version == CONTEXT_SCHEMA_VERSION
        assert [s.name for s in context.objective.required_skills] == ["Python", "SQL", "Git"]
        assert context.learner.gaps == ["databases"]
        assert context.previous_sprints == []
        assert any(i.startswith("ADDRESS GAPS (databases)") for i in context.instructions)
        assert context.instructions[-1].startswith("REFLECTION LOOP")

    def test_continuity_from_previous_sprint(self, objective, profile, skills):
        previous = Sprint(
            objective_id=objective.id,
            day_number=1,
            title="Day 1: Python",
            status=SprintStatus.COMPLETED,
            score=88.0,
            completion_percentage=100.0,
            reflection="Struggled   with\nasync code",
            plan={"micro_tasks": [{"completion_criteria": ["Script runs"]}]},
        )

        context = build_planner_context(objective, profile, 2, [previous], skills)

        assert context.previous_sprints[0].deliverables == ["Script runs"]
        assert context.performance.average_score == 88.0
        joined = "\n".join(context.instructions)
        assert "Reference Day 1's outcome \"Day 1: Python\"" in joined
        assert "(Script runs)" in joined
        assert '"Struggled with async code"' in joined

    def test_normalize_reflection_caps_length(self):
        text = "word " * 100
        normalized = normalize_reflection(text)
        assert len(normalized) == 160
        assert normalized.endswith("...")

    def test_serializes_to_json(self, context):
        data = context.model_dump(mode="json")
        assert data["schema_version"] == 1
        assert data["day_number"] == 1


class TestFallbackPlanner:
    """Tests for the heuristic planner."""

    def test_estimate_duration(self, context):
        estimate = estimate_duration(context)
        assert estimate.estimated_total_days == 30
        assert estimate.daily_hours == pytest.approx(2.0)
        assert estimate.difficulty.value == "beginner"

    def test_relevant_strength_shortens_estimate(self, objective, profile, skills):
        profile.strengths = ["python"]
        context = build_planner_context(objective, profile, 1, [], skills)
        assert estimate_duration(context).estimated_total_days == 21

    @pytest.mark.asyncio
    async def test_plan_is_deterministic(self, context):
        planner = FallbackPlanner()
        first = await planner.generate_plan(context)
        second = await planner.generate_plan(context)

        assert first == second
        assert first.title == "Day 1: Python"
        assert [t.type for t in first.micro_tasks] == ["learn", "practice", "review"]
        assert first.total_estimated_hours == pytest.approx(2.0)
        assert all(t.completion_criteria for t in first.micro_tasks)

    def test_focus_rotates_through_skills(self, objective, profile, skills):
        context = build_planner_context(objective, profile, 2, [], skills)
        assert FallbackPlanner().build_plan(context).title == "Day 2: SQL"


class TestHttpPlanner:
    """Tests for the remote planner client."""

    @pytest.mark.asyncio
    async def test_successful_request(self, context):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=PLAN_PAYLOAD)

        planner = HttpPlanner("http://planner.test/", client=mock_client(handler))
        plan = await planner.generate_plan(context)

        assert plan.title == "Day 1: Build a REST endpoint"
        assert str(seen[0].url) == "http://planner.test/plans"

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, context, no_backoff):
        responses = iter([httpx.Response(503), httpx.Response(502), httpx.Response(200, json=PLAN_PAYLOAD)])
        planner = HttpPlanner(
            "http://planner.test", retry_attempts=3, client=mock_client(lambda r: next(responses))
        )

        plan = await planner.generate_plan(context)

        assert plan.difficulty.value == "intermediate"
        assert no_backoff == [1, 2]

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, context):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(422, json={"detail": "bad"})

        planner = HttpPlanner("http://planner.test", client=mock_client(handler))
        with pytest.raises(GenerationFailure):
            await planner.generate_plan(context)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries(self, context):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        planner = HttpPlanner("http://planner.test", retry_attempts=2, client=mock_client(handler))
        with pytest.raises(GenerationFailure) as exc:
            await planner.generate_plan(context)
        assert exc.value.message == "Planner failed after 2 attempts"

    @pytest.mark.asyncio
    async def test_unusable_plan(self, context):
        planner = HttpPlanner(
            "http://planner.test",
            client=mock_client(lambda r: httpx.Response(200, json={"plan": {"title": "x"}})),
        )
        with pytest.raises(GenerationFailure):
            await planner.generate_plan(context)


class FailingPlanner:
    async def generate_plan(self, context):
        raise GenerationFailure("planner down")


class SlowPlanner:
    async def generate_plan(self, context):
        await asyncio.Event().wait()


class TestResilientPlanner:
    """Tests for primary-with-fallback planning."""

    @pytest.mark.asyncio
    async def test_falls_back_on_failure(self, context):
        plan = await ResilientPlanner(FailingPlanner()).generate_plan(context)
        assert plan == FallbackPlanner().build_plan(context)

    @pytest.mark.asyncio
    async def test_falls_back_on_timeout(self, context):
        plan = await ResilientPlanner(SlowPlanner(), timeout_seconds=0.01).generate_plan(context)
        assert plan.title == "Day 1: Python"

    @pytest.mark.asyncio
    async def test_primary_used_when_healthy(self, context):
        planner = HttpPlanner(
            "http://planner.test",
            client=mock_client(lambda r: httpx.Response(200, json=PLAN_PAYLOAD)),
        )
        plan = await ResilientPlanner(planner).generate_plan(context)
        assert plan.title == "Day 1: Build a REST endpoint"
