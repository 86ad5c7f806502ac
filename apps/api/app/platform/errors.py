from __future__ import annotations

import uuid
from typing import Any


class PipelineError(Exception):
    """Base error raised by pipeline services and mapped to HTTP at the API boundary."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(PipelineError):
    """Malformed input rejected before any state mutation."""


class NotFoundError(PipelineError):
    """Referenced entity does not exist in the caller's organization."""


class ConflictError(PipelineError):
    """Request is incompatible with the current state of an entity."""


class TransitionConflictError(ConflictError):
    """Raised when a state machine has no edge for the requested transition."""

    def __init__(
        self,
        entity_type: str,
        from_state: str,
        to_state: str,
        entity_id: uuid.UUID | None = None,
    ) -> None:
        self.entity_type = entity_type
        self.from_state = from_state
        self.to_state = to_state
        self.entity_id = entity_id
        super().__init__(f"Cannot transition {entity_type} from {from_state} to {to_state}.")

    def as_dict(self) -> dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id is not None else None,
            "from_state": self.from_state,
            "to_state": self.to_state,
        }


class OperationTimeoutError(PipelineError):
    """Unit of work exceeded its deadline and was rolled back."""
