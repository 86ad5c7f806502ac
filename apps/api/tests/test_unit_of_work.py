from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Generator
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.customers.models import Lead, LeadStatus
from app.business.invoices.models import Invoice, InvoiceStatus
from app.business.lifecycle import EntityKind, invoice_machine, lead_machine
from app.core.database import Base
from app.events import RecordingTransitionSink, StateTransitionEvent
from app.platform.errors import ConflictError, OperationTimeoutError
from app.platform.tenancy import OrgContext
from app.platform.unit_of_work import UnitOfWork


NOW = datetime(2026, 6, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def sink() -> RecordingTransitionSink:
    return RecordingTransitionSink()


@pytest.fixture()
def ctx() -> OrgContext:
    return OrgContext(organization_id=uuid.uuid4(), user_id="user-1")


@pytest.fixture()
def lead(db_session: Session, ctx: OrgContext) -> Lead:
    lead = Lead(id=uuid.uuid4(), organization_id=ctx.organization_id, name="Ada", status=LeadStatus.NEW.value)
    db_session.add(lead)
    db_session.commit()
    return lead


def _lose(uow: UnitOfWork, lead: Lead) -> StateTransitionEvent | None:
    record = lead_machine.transition(lead, LeadStatus.LOST, NOW)
    return uow.record_transition(EntityKind.LEAD.value, lead.id, lead.organization_id, record)


class ExplodingSink:
    def emit(self, event: StateTransitionEvent) -> None:
        raise RuntimeError("bus offline")


def test_events_are_emitted_only_after_commit(db_session: Session, sink: RecordingTransitionSink, lead: Lead) -> None:
    uow = UnitOfWork(db_session, sink)

    with uow.transaction():
        event = _lose(uow, lead)
        assert uow.pending_events == [event]
        assert sink.events == []

    assert sink.events == [event]
    assert uow.emitted == [event]
    assert uow.pending_events == []
    assert event is not None
    assert (event.entity_type, event.from_state, event.to_state) == ("Lead", "New", "Lost")
    assert db_session.scalar(select(Lead.status).where(Lead.id == lead.id)) == "Lost"


def test_failure_rolls_back_and_drops_events(db_session: Session, sink: RecordingTransitionSink, lead: Lead) -> None:
    uow = UnitOfWork(db_session, sink)

    with pytest.raises(RuntimeError):
        with uow.transaction():
            _lose(uow, lead)
            raise RuntimeError("boom")

    assert sink.events == []
    assert uow.pending_events == []
    assert db_session.scalar(select(Lead.status).where(Lead.id == lead.id)) == "New"


def test_record_transition_requires_an_open_transaction(db_session: Session, sink: RecordingTransitionSink, lead: Lead) -> None:
    uow = UnitOfWork(db_session, sink)

    with pytest.raises(RuntimeError):
        _lose(uow, lead)


def test_transactions_do_not_nest(db_session: Session, sink: RecordingTransitionSink) -> None:
    uow = UnitOfWork(db_session, sink)

    with pytest.raises(RuntimeError):
        with uow.transaction():
            with uow.transaction():
                pass

    # the outer block is closed after the failure
    with uow.transaction():
        pass


def test_noop_transition_records_no_event(db_session: Session, sink: RecordingTransitionSink) -> None:
    invoice = Invoice(id=uuid.uuid4(), job_id=uuid.uuid4(), status=InvoiceStatus.PAID.value)
    uow = UnitOfWork(db_session, sink)

    with uow.transaction():
        record = invoice_machine.transition(invoice, InvoiceStatus.PAID, NOW)
        assert uow.record_transition(EntityKind.INVOICE.value, invoice.id, uuid.uuid4(), record) is None

    assert sink.events == []


def test_sink_failure_is_logged_and_commit_stands(
    caplog: pytest.LogCaptureFixture, db_session: Session, lead: Lead
) -> None:
    caplog.set_level(logging.ERROR, logger="app.pipeline.uow")
    uow = UnitOfWork(db_session, ExplodingSink())

    with uow.transaction():
        _lose(uow, lead)

    assert db_session.scalar(select(Lead.status).where(Lead.id == lead.id)) == "Lost"
    assert len(uow.emitted) == 1
    records = [record for record in caplog.records if record.getMessage() == "transition_event_emit_failed"]
    assert len(records) == 1
    assert getattr(records[0], "entity_id") == str(lead.id)


def test_stale_row_version_becomes_conflict(db_session: Session, sink: RecordingTransitionSink, lead: Lead) -> None:
    uow = UnitOfWork(db_session, sink)

    with pytest.raises(ConflictError) as exc_info:
        with uow.transaction():
            _lose(uow, lead)
            # a concurrent writer bumps the version behind this session's back
            db_session.execute(
                update(Lead)
                .where(Lead.id == lead.id)
                .values(row_version=Lead.row_version + 1)
                .execution_options(synchronize_session=False)
            )

    assert exc_info.value.message == "Record was modified by another request"
    assert sink.events == []


def test_integrity_error_becomes_conflict(db_session: Session, sink: RecordingTransitionSink) -> None:
    uow = UnitOfWork(db_session, sink)

    with pytest.raises(ConflictError) as exc_info:
        with uow.transaction():
            raise IntegrityError("INSERT INTO pipeline_lead", {}, Exception("duplicate key"))

    assert exc_info.value.message == "Record conflicts with existing data"


def test_deadline_overrun_rolls_back(db_session: Session, sink: RecordingTransitionSink, lead: Lead) -> None:
    uow = UnitOfWork(db_session, sink, timeout_seconds=0.01)

    with pytest.raises(OperationTimeoutError) as exc_info:
        with uow.transaction():
            _lose(uow, lead)
            time.sleep(0.05)

    assert exc_info.value.message == "Operation exceeded its deadline"
    assert sink.events == []
    assert db_session.scalar(select(func.count()).select_from(Lead).where(Lead.status == "Lost")) == 0
