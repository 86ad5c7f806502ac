from __future__ import annotations

from collections.abc import Iterable
from typing import Any


def clean_text(value: str | None) -> str | None:
    """Trimmed value, or None when blank."""
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def apply_text_fields(target: Any, changes: dict[str, Any], fields: Iterable[str]) -> None:
    """Copy the supplied optional text fields onto `target`; blank values clear the field."""
    for name in fields:
        if name in changes:
            setattr(target, name, clean_text(changes[name]))
