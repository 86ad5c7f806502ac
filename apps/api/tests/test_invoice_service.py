from __future__ import annotations

import logging
import uuid
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.customers.schemas import LeadCreate
from app.business.customers.service import LeadService
from app.business.invoices.schemas import InvoiceCreate, InvoiceUpdate
from app.business.invoices.service import InvoiceService
from app.business.jobs.models import Job
from app.business.jobs.schemas import JobCreate
from app.business.jobs.service import JobService
from app.core.database import Base
from app.events import RecordingTransitionSink
from app.platform.errors import ConflictError, NotFoundError, TransitionConflictError, ValidationError
from app.platform.ledger import LineItemInput
from app.platform.tenancy import OrgContext
from app.platform.unit_of_work import UnitOfWork


NOW = datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)


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
def uow(db_session: Session, sink: RecordingTransitionSink) -> UnitOfWork:
    return UnitOfWork(db_session, sink)


@pytest.fixture()
def ctx() -> OrgContext:
    return OrgContext(organization_id=uuid.uuid4(), user_id="user-1")


@pytest.fixture()
def invoices() -> InvoiceService:
    return InvoiceService(clock=lambda: NOW)


@pytest.fixture()
def job_id(uow: UnitOfWork, ctx: OrgContext) -> uuid.UUID:
    lead = LeadService(clock=lambda: NOW).create_lead(uow, ctx, LeadCreate(name="Ada"))
    job = JobService(clock=lambda: NOW).create_job(
        uow,
        ctx,
        JobCreate(lead_id=lead.id, start_at=NOW, estimated_end_at=NOW + timedelta(days=5)),
    )
    return job.id


def _lines() -> list[LineItemInput]:
    return [
        LineItemInput(description="Rough-in", quantity=Decimal("3"), unit_price=Decimal("100"), sort_order=1),
        LineItemInput(description="Sales tax", is_tax_line=True, tax_rate=Decimal("8.25"), sort_order=2),
    ]


def _draft(invoices: InvoiceService, uow: UnitOfWork, ctx: OrgContext, job_id: uuid.UUID, **overrides):
    values = {"job_id": job_id, "line_items": _lines()}
    values.update(overrides)
    return invoices.create_invoice(uow, ctx, InvoiceCreate(**values))


def test_create_invoice_computes_totals(
    uow: UnitOfWork, ctx: OrgContext, invoices: InvoiceService, job_id: uuid.UUID
) -> None:
    invoice = _draft(invoices, uow, ctx, job_id, notes=" Net 30 ")

    assert invoice.status == "Draft"
    assert invoice.subtotal == Decimal("300.00")
    assert invoice.tax_total == Decimal("24.75")
    assert invoice.amount == Decimal("324.75")
    assert invoice.notes == "Net 30"
    assert invoice.due_at is None
    assert [line.line_total for line in invoice.line_items] == [Decimal("300.00"), Decimal("24.75")]


def test_invoice_lines_reject_blank_descriptions(
    uow: UnitOfWork, ctx: OrgContext, invoices: InvoiceService, job_id: uuid.UUID
) -> None:
    with pytest.raises(ValidationError) as exc_info:
        _draft(invoices, uow, ctx, job_id, line_items=[LineItemInput(description=" ", unit_price=Decimal("5"))])
    assert exc_info.value.message == "Line item description is required"

    with pytest.raises(ValidationError) as exc_info:
        _draft(invoices, uow, ctx, job_id, line_items=[])
    assert exc_info.value.message == "At least one line item is required"


def test_invoice_requires_a_job_in_the_organization(
    uow: UnitOfWork, ctx: OrgContext, invoices: InvoiceService, job_id: uuid.UUID
) -> None:
    other = OrgContext(organization_id=uuid.uuid4(), user_id="user-2")

    with pytest.raises(NotFoundError) as exc_info:
        _draft(invoices, uow, other, job_id)

    assert exc_info.value.message == "Job not found"


def test_issue_defaults_due_date(
    uow: UnitOfWork, ctx: OrgContext, invoices: InvoiceService, job_id: uuid.UUID, sink: RecordingTransitionSink
) -> None:
    invoice = _draft(invoices, uow, ctx, job_id)

    issued = invoices.issue_invoice(uow, ctx, invoice.id)

    assert issued.status == "Issued"
    assert issued.issued_at == NOW
    assert issued.due_at == NOW + timedelta(days=30)
    assert [(e.entity_type, e.from_state, e.to_state) for e in sink.events] == [("Invoice", "Draft", "Issued")]


def test_issue_keeps_supplied_due_date(
    uow: UnitOfWork, ctx: OrgContext, invoices: InvoiceService, job_id: uuid.UUID
) -> None:
    invoice = _draft(invoices, uow, ctx, job_id, due_at=NOW + timedelta(days=14))
    assert invoices.issue_invoice(uow, ctx, invoice.id).due_at == NOW + timedelta(days=14)

    other = _draft(invoices, uow, ctx, job_id)
    issued = invoices.issue_invoice(uow, ctx, other.id, due_at=(NOW + timedelta(days=7)).replace(tzinfo=None))
    assert issued.due_at == NOW + timedelta(days=7)


def test_issue_requires_the_job_to_exist(
    db_session: Session, uow: UnitOfWork, ctx: OrgContext, invoices: InvoiceService, job_id: uuid.UUID
) -> None:
    invoice = _draft(invoices, uow, ctx, job_id)
    db_session.delete(db_session.get(Job, job_id))
    db_session.commit()

    with pytest.raises(ConflictError) as exc_info:
        invoices.issue_invoice(uow, ctx, invoice.id)

    assert exc_info.value.message == "Cannot issue an invoice whose job no longer exists"
    assert invoices.get_invoice(uow, ctx, invoice.id).status == "Draft"


def test_mark_paid_is_idempotent(
    uow: UnitOfWork, ctx: OrgContext, invoices: InvoiceService, job_id: uuid.UUID, sink: RecordingTransitionSink
) -> None:
    invoice = _draft(invoices, uow, ctx, job_id)
    invoices.issue_invoice(uow, ctx, invoice.id)

    first = invoices.mark_invoice_paid(uow, ctx, invoice.id)
    later = InvoiceService(clock=lambda: NOW + timedelta(days=2))
    second = later.mark_invoice_paid(uow, ctx, invoice.id)

    assert first.status == second.status == "Paid"
    assert second.paid_at == NOW
    assert [e.to_state for e in sink.events] == ["Issued", "Paid"]


def test_draft_invoice_cannot_be_paid(
    uow: UnitOfWork, ctx: OrgContext, invoices: InvoiceService, job_id: uuid.UUID
) -> None:
    invoice = _draft(invoices, uow, ctx, job_id)

    with pytest.raises(TransitionConflictError) as exc_info:
        invoices.mark_invoice_paid(uow, ctx, invoice.id)

    assert exc_info.value.as_dict() == {
        "entity_type": "Invoice",
        "entity_id": str(invoice.id),
        "from_state": "Draft",
        "to_state": "Paid",
    }


def test_only_draft_invoices_can_be_edited(
    uow: UnitOfWork, ctx: OrgContext, invoices: InvoiceService, job_id: uuid.UUID
) -> None:
    invoice = _draft(invoices, uow, ctx, job_id, notes="first")

    updated = invoices.update_invoice(
        uow,
        ctx,
        invoice.id,
        InvoiceUpdate(line_items=[LineItemInput(description="Call-out", unit_price=Decimal("75"))], notes=None),
    )
    assert updated.amount == Decimal("75.00")
    assert updated.notes is None

    invoices.issue_invoice(uow, ctx, invoice.id)
    with pytest.raises(ConflictError) as exc_info:
        invoices.update_invoice(uow, ctx, invoice.id, InvoiceUpdate(notes="late"))
    assert exc_info.value.message == "Only draft invoices can be updated"


def test_paid_invoice_cannot_be_deleted(
    uow: UnitOfWork, ctx: OrgContext, invoices: InvoiceService, job_id: uuid.UUID
) -> None:
    draft = _draft(invoices, uow, ctx, job_id)
    invoices.delete_invoice(uow, ctx, draft.id)
    with pytest.raises(NotFoundError):
        invoices.get_invoice(uow, ctx, draft.id)

    paid = _draft(invoices, uow, ctx, job_id)
    invoices.issue_invoice(uow, ctx, paid.id)
    invoices.mark_invoice_paid(uow, ctx, paid.id)
    with pytest.raises(ConflictError) as exc_info:
        invoices.delete_invoice(uow, ctx, paid.id)
    assert exc_info.value.message == "Cannot delete a paid invoice"


def test_overdue_sweep_moves_only_past_due_issued_invoices(
    caplog: pytest.LogCaptureFixture,
    uow: UnitOfWork,
    ctx: OrgContext,
    invoices: InvoiceService,
    job_id: uuid.UUID,
    sink: RecordingTransitionSink,
) -> None:
    past_due = _draft(invoices, uow, ctx, job_id, due_at=NOW + timedelta(days=1))
    not_yet_due = _draft(invoices, uow, ctx, job_id, due_at=NOW + timedelta(days=10))
    paid = _draft(invoices, uow, ctx, job_id, due_at=NOW + timedelta(days=1))
    draft = _draft(invoices, uow, ctx, job_id, due_at=NOW - timedelta(days=1))
    for invoice in (past_due, not_yet_due, paid):
        invoices.issue_invoice(uow, ctx, invoice.id)
    invoices.mark_invoice_paid(uow, ctx, paid.id)
    sink.events.clear()

    caplog.set_level(logging.INFO, logger="app.pipeline.invoices")
    sweep_at = NOW + timedelta(days=5)
    result = invoices.sweep_overdue_invoices(uow, ctx, sweep_at)

    assert result.invoice_ids == [past_due.id]
    assert result.swept_at == sweep_at
    swept = invoices.get_invoice(uow, ctx, past_due.id)
    assert swept.status == "Overdue"
    assert swept.overdue_at == sweep_at
    assert invoices.get_invoice(uow, ctx, not_yet_due.id).status == "Issued"
    assert invoices.get_invoice(uow, ctx, paid.id).status == "Paid"
    assert invoices.get_invoice(uow, ctx, draft.id).status == "Draft"
    assert [(e.entity_id, e.from_state, e.to_state) for e in sink.events] == [(past_due.id, "Issued", "Overdue")]

    records = [record for record in caplog.records if record.getMessage() == "pipeline.overdue_sweep"]
    assert len(records) == 1
    assert getattr(records[0], "event_count") == 1

    # a second sweep finds nothing left to move
    assert invoices.sweep_overdue_invoices(uow, ctx, sweep_at).invoice_ids == []


def test_overdue_invoice_can_be_paid(
    uow: UnitOfWork, ctx: OrgContext, invoices: InvoiceService, job_id: uuid.UUID
) -> None:
    invoice = _draft(invoices, uow, ctx, job_id, due_at=NOW + timedelta(days=1))
    invoices.issue_invoice(uow, ctx, invoice.id)
    invoices.sweep_overdue_invoices(uow, ctx, NOW + timedelta(days=2))

    paid = invoices.mark_invoice_paid(uow, ctx, invoice.id)

    assert paid.status == "Paid"
    assert paid.overdue_at == NOW + timedelta(days=2)


def test_sweep_ignores_other_organizations(
    uow: UnitOfWork, ctx: OrgContext, invoices: InvoiceService, job_id: uuid.UUID
) -> None:
    invoice = _draft(invoices, uow, ctx, job_id, due_at=NOW + timedelta(days=1))
    invoices.issue_invoice(uow, ctx, invoice.id)

    other = OrgContext(organization_id=uuid.uuid4(), user_id="user-2")
    assert invoices.sweep_overdue_invoices(uow, other, NOW + timedelta(days=5)).invoice_ids == []
    assert invoices.get_invoice(uow, ctx, invoice.id).status == "Issued"
