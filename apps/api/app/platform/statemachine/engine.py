from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from app.platform.errors import TransitionConflictError


S = TypeVar("S", bound=Enum)
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class TransitionRecord(Generic[S]):
    from_state: S
    to_state: S
    occurred_at: datetime

    @property
    def is_noop(self) -> bool:
        return self.from_state == self.to_state


class PermitTable(Generic[S]):
    """Immutable set of directed (from, to) edges.

    Edges are one-directional; a reverse edge has to be permitted on its own.
    """

    __slots__ = ("_edges",)

    def __init__(self, edges: Iterable[tuple[S, S]] = ()) -> None:
        table: dict[S, frozenset[S]] = {}
        for from_state, to_state in edges:
            table[from_state] = table.get(from_state, frozenset()) | {to_state}
        self._edges = table

    def permit(self, from_state: S, to_state: S) -> PermitTable[S]:
        return PermitTable([*self, (from_state, to_state)])

    def can_transition(self, from_state: S, to_state: S) -> bool:
        return to_state in self._edges.get(from_state, frozenset())

    def targets(self, from_state: S) -> frozenset[S]:
        return self._edges.get(from_state, frozenset())

    def __iter__(self) -> Iterator[tuple[S, S]]:
        for from_state, targets in self._edges.items():
            for to_state in targets:
                yield from_state, to_state

    def __contains__(self, edge: object) -> bool:
        if not isinstance(edge, tuple) or len(edge) != 2:
            return False
        return self.can_transition(edge[0], edge[1])

    def __len__(self) -> int:
        return sum(len(targets) for targets in self._edges.values())

    def __repr__(self) -> str:
        edges = ", ".join(f"{a.name}->{b.name}" for a, b in self)
        return f"PermitTable({edges})"


@dataclass(frozen=True, slots=True)
class StateMachine(Generic[E, S]):
    """Permit table plus the accessor and side-effect function for one entity kind.

    The machine keeps no entity data, so a single instance is shared by all callers.
    `apply(entity, from_state, to_state, now)` runs only after the edge check passed.
    """

    entity_type: str
    permits: PermitTable[S]
    get_state: Callable[[E], S]
    apply: Callable[[E, S, S, datetime], None]
    idempotent_targets: frozenset[S] = field(default_factory=frozenset)
    get_id: Callable[[E], Any] | None = None

    def can_transition(self, from_state: S, to_state: S) -> bool:
        return self.permits.can_transition(from_state, to_state)

    def ensure_can_transition(self, from_state: S, to_state: S, entity_id: Any = None) -> None:
        if not self.can_transition(from_state, to_state):
            raise TransitionConflictError(self.entity_type, from_state.value, to_state.value, entity_id)

    def transition(self, entity: E, to_state: S, now: datetime) -> TransitionRecord[S]:
        from_state = self.get_state(entity)
        if from_state == to_state and to_state in self.idempotent_targets:
            return TransitionRecord(from_state=from_state, to_state=to_state, occurred_at=now)

        entity_id = self.get_id(entity) if self.get_id is not None else None
        self.ensure_can_transition(from_state, to_state, entity_id)
        self.apply(entity, from_state, to_state, now)
        return TransitionRecord(from_state=from_state, to_state=to_state, occurred_at=now)
