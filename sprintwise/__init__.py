"""
Sprintwise - adaptive progression engine for daily learning sprints.

Grades knowledge checks, tracks per-skill mastery, schedules reviews,
adjusts pacing and sequences generation of the next sprints.
"""

__version__ = "0.1.0"
