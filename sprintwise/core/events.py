"""
Structured notification events.

The engine emits events for an external layer to localize and deliver.
It performs no localization or delivery itself.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Protocol

from loguru import logger


class EventType(str, Enum):
    SKILL_MASTERED = "skill_mastered"
    REVIEW_NEEDED = "review_needed"
    DIFFICULTY_INCREASED = "difficulty_increased"
    DIFFICULTY_DECREASED = "difficulty_decreased"
    SPRINT_GENERATED = "sprint_generated"


@dataclass
class NotificationEvent:
    type: EventType
    title: str
    message: str
    user_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


class NotificationSink(Protocol):
    """Anything that can accept engine events."""

    async def emit(self, event: NotificationEvent) -> None: ...


class LoggingNotificationSink:
    """Default sink: records events in the log stream."""

    async def emit(self, event: NotificationEvent) -> None:
        logger.info(f"[{event.type.value}] user={event.user_id} {event.title}: {event.message}")
