"""
Planning Module - Contract with the sprint content planner.

Components:
- plan: SprintPlan / MicroTask output schema
- context: Versioned PlannerContext and its builder
- planner: HTTP, heuristic fallback and resilient planners
"""

from sprintwise.planning.context import (
    CONTEXT_SCHEMA_VERSION,
    PlannerContext,
    build_instructions,
    build_planner_context,
    normalize_reflection,
)
from sprintwise.planning.plan import MicroTask, SprintPlan
from sprintwise.planning.planner import (
    DurationEstimate,
    FallbackPlanner,
    HttpPlanner,
    Planner,
    ResilientPlanner,
    estimate_duration,
)

__all__ = [
    # Schema
    "SprintPlan",
    "MicroTask",
    "PlannerContext",
    "CONTEXT_SCHEMA_VERSION",
    "build_planner_context",
    "build_instructions",
    "normalize_reflection",
    # Planners
    "Planner",
    "HttpPlanner",
    "FallbackPlanner",
    "ResilientPlanner",
    "DurationEstimate",
    "estimate_duration",
]
