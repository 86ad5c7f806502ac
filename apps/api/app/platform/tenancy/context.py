from __future__ import annotations

import uuid
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class OrgContext:
    """Caller scope passed to every pipeline service call."""

    organization_id: uuid.UUID
    user_id: str
    correlation_id: str | None = None
