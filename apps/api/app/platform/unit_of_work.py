"""Transaction boundary for pipeline operations.

A unit of work wraps the request's SQLAlchemy session. Transition events recorded while a
transaction is open are held back until the commit succeeds and are dropped on rollback.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.events import EventBusTransitionSink, StateTransitionEvent, TransitionEventSink
from app.metrics import observe_pipeline_transition, observe_transition_conflict, observe_unit_of_work_rollback
from app.otel import get_tracer
from app.platform.errors import ConflictError, OperationTimeoutError, TransitionConflictError
from app.platform.statemachine import TransitionRecord


logger = logging.getLogger("app.pipeline.uow")
tracer = get_tracer("app.pipeline")


class UnitOfWork:
    def __init__(
        self,
        session: Session,
        sink: TransitionEventSink | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self.session = session
        self.sink: TransitionEventSink = sink if sink is not None else EventBusTransitionSink()
        self.timeout_seconds = timeout_seconds
        self.emitted: list[StateTransitionEvent] = []
        self._pending: list[StateTransitionEvent] = []
        self._active = False

    @property
    def pending_events(self) -> list[StateTransitionEvent]:
        return list(self._pending)

    def record_transition(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        organization_id: uuid.UUID,
        record: TransitionRecord,
    ) -> StateTransitionEvent | None:
        if not self._active:
            raise RuntimeError("transition recorded outside of a transaction")
        if record.is_noop:
            return None
        event = StateTransitionEvent(
            entity_type=entity_type,
            entity_id=entity_id,
            organization_id=organization_id,
            from_state=record.from_state.value,
            to_state=record.to_state.value,
            occurred_at=record.occurred_at,
        )
        self._pending.append(event)
        return event

    @contextmanager
    def transaction(self) -> Iterator[UnitOfWork]:
        if self._active:
            raise RuntimeError("unit of work already has an open transaction")

        self._active = True
        self._pending = []
        deadline = time.monotonic() + self.timeout_seconds if self.timeout_seconds is not None else None
        try:
            yield self
            if deadline is not None and time.monotonic() > deadline:
                raise OperationTimeoutError("Operation exceeded its deadline")
            with tracer.start_as_current_span("pipeline.unit_of_work.commit") as span:
                span.set_attribute("pipeline.event_count", len(self._pending))
                self.session.commit()
        except StaleDataError as exc:
            self._rollback("stale_data")
            raise ConflictError("Record was modified by another request") from exc
        except IntegrityError as exc:
            self._rollback("integrity")
            raise ConflictError("Record conflicts with existing data") from exc
        except Exception as exc:
            if isinstance(exc, TransitionConflictError):
                observe_transition_conflict(exc.entity_type)
            self._rollback(type(exc).__name__)
            raise
        finally:
            self._active = False

        committed, self._pending = self._pending, []
        self._emit(committed)

    def _rollback(self, reason: str) -> None:
        self.session.rollback()
        self._pending = []
        observe_unit_of_work_rollback(reason)

    def _emit(self, events: list[StateTransitionEvent]) -> None:
        for event in events:
            observe_pipeline_transition(event.entity_type, event.from_state, event.to_state)
            try:
                self.sink.emit(event)
            except Exception as exc:
                # sink failures are logged; the commit stands
                logger.exception(
                    "transition_event_emit_failed",
                    extra={"entity_type": event.entity_type, "entity_id": str(event.entity_id), "error": str(exc)},
                )
            self.emitted.append(event)
        if events:
            logger.debug("pipeline.events_emitted", extra={"event_count": len(events)})
