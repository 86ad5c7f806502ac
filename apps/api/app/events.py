from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from app.context import get_correlation_id
from app.core.events import event_bus

TRANSITION_EVENT_TYPE = "pipeline.transition"

published_events: list[dict[str, Any]] = []


def publish(envelope: dict[str, Any]) -> None:
    if envelope.get("correlation_id") is None:
        envelope["correlation_id"] = get_correlation_id()

    published_events.append(envelope)
    event_type = envelope.get("event_type")
    if isinstance(event_type, str) and event_type:
        event_bus.publish(event_type, envelope)


@dataclass(frozen=True, slots=True)
class StateTransitionEvent:
    entity_type: str
    entity_id: uuid.UUID
    organization_id: uuid.UUID
    from_state: str
    to_state: str
    occurred_at: datetime

    def to_envelope(self) -> dict[str, Any]:
        return {
            "event_type": TRANSITION_EVENT_TYPE,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id),
            "organization_id": str(self.organization_id),
            "from_state": self.from_state,
            "to_state": self.to_state,
            "occurred_at": self.occurred_at.isoformat(),
        }

    @classmethod
    def from_envelope(cls, envelope: dict[str, Any]) -> StateTransitionEvent:
        return cls(
            entity_type=str(envelope["entity_type"]),
            entity_id=uuid.UUID(str(envelope["entity_id"])),
            organization_id=uuid.UUID(str(envelope["organization_id"])),
            from_state=str(envelope["from_state"]),
            to_state=str(envelope["to_state"]),
            occurred_at=datetime.fromisoformat(str(envelope["occurred_at"])),
        )


class TransitionEventSink(Protocol):
    def emit(self, event: StateTransitionEvent) -> None: ...


class EventBusTransitionSink:
    """Publishes committed transitions on the in-process event bus."""

    def emit(self, event: StateTransitionEvent) -> None:
        publish(event.to_envelope())


class LoggingTransitionSink:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("app.pipeline.transitions")

    def emit(self, event: StateTransitionEvent) -> None:
        self._logger.info(
            TRANSITION_EVENT_TYPE,
            extra={
                "entity_type": event.entity_type,
                "entity_id": str(event.entity_id),
                "from_state": event.from_state,
                "to_state": event.to_state,
                "occurred_at": event.occurred_at.isoformat(),
            },
        )


@dataclass
class RecordingTransitionSink:
    events: list[StateTransitionEvent] = field(default_factory=list)

    def emit(self, event: StateTransitionEvent) -> None:
        self.events.append(event)
