from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.customers.schemas import CompanyCreate, LeadCreate
from app.business.customers.service import CompanyService, LeadService
from app.business.estimates.schemas import AcceptEstimateRequest, EstimateCreate, EstimateUpdate
from app.business.estimates.service import EstimateService
from app.business.invoices.models import Invoice
from app.business.invoices.service import InvoiceService
from app.business.jobs.models import Job
from app.business.jobs.schemas import MilestoneTemplate
from app.core.config import Settings
from app.core.database import Base
from app.events import RecordingTransitionSink
from app.platform.errors import ConflictError, NotFoundError, TransitionConflictError, ValidationError
from app.platform.ledger import LineItemInput, TaxLineInput
from app.platform.tenancy import OrgContext
from app.platform.unit_of_work import UnitOfWork


NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
START = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)
END = datetime(2026, 3, 20, 17, 0, tzinfo=timezone.utc)


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
def leads() -> LeadService:
    return LeadService(clock=lambda: NOW)


@pytest.fixture()
def estimates() -> EstimateService:
    return EstimateService(clock=lambda: NOW, settings_factory=lambda: Settings(accept_creates_draft_invoice=True))


def _rough_in_lines() -> list[LineItemInput]:
    return [
        LineItemInput(description="Rough-in", quantity=Decimal("3"), unit_price=Decimal("100"), sort_order=1),
        LineItemInput(description="Sales tax", is_tax_line=True, tax_rate=Decimal("8.25"), sort_order=2),
    ]


def _accept_request(**overrides) -> AcceptEstimateRequest:
    values = {"start_at": START, "estimated_end_at": END}
    values.update(overrides)
    return AcceptEstimateRequest(**values)


def _transitions(sink: RecordingTransitionSink) -> list[tuple[str, str, str]]:
    return [(event.entity_type, event.from_state, event.to_state) for event in sink.events]


def test_rough_in_from_estimate_to_paid_invoice(
    uow: UnitOfWork,
    ctx: OrgContext,
    leads: LeadService,
    estimates: EstimateService,
    sink: RecordingTransitionSink,
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))

    estimate = estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id, line_items=_rough_in_lines()))
    assert estimate.status == "Draft"
    assert estimate.subtotal == Decimal("300.00")
    assert estimate.tax_total == Decimal("24.75")
    assert estimate.amount == Decimal("324.75")
    assert [line.line_total for line in estimate.line_items] == [Decimal("300.00"), Decimal("24.75")]
    assert leads.get_lead(uow, ctx, lead.id).status == "Converted"

    estimates.send_estimate(uow, ctx, estimate.id)
    result = estimates.accept_estimate(uow, ctx, estimate.id, _accept_request())

    assert result.estimate.status == "Accepted"
    assert result.estimate.accepted_at == NOW
    assert result.job.status == "Scheduled"
    assert result.job.estimate_id == estimate.id
    assert result.job.lead_id == lead.id
    assert result.job.start_at == START
    assert result.job.estimated_end_at == END
    assert [(m.title, m.status, m.sort_order, m.occurred_at) for m in result.job.milestones] == [
        ("Rough-in", "Pending", 1, START)
    ]
    assert result.invoice_id is not None

    invoices = InvoiceService(clock=lambda: NOW + timedelta(days=1))
    draft = invoices.get_invoice(uow, ctx, result.invoice_id)
    assert draft.status == "Draft"
    assert draft.amount == Decimal("324.75")
    assert draft.job_id == result.job.id

    issued = invoices.issue_invoice(uow, ctx, draft.id)
    assert issued.due_at == NOW + timedelta(days=31)
    paid = invoices.mark_invoice_paid(uow, ctx, draft.id)
    assert paid.status == "Paid"

    assert _transitions(sink) == [
        ("Lead", "New", "Converted"),
        ("Estimate", "Draft", "Sent"),
        ("Estimate", "Sent", "Accepted"),
        ("Invoice", "Draft", "Issued"),
        ("Invoice", "Issued", "Paid"),
    ]


def test_amount_estimate_uses_fallback_line_and_inherited_taxes(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    CompanyService(clock=lambda: NOW).create_company(
        uow, ctx, CompanyCreate(name="Acme", tax_lines=[TaxLineInput(label="County", rate=Decimal("1"))])
    )
    lead = leads.create_lead(
        uow,
        ctx,
        LeadCreate(name="Ada", company="Acme", tax_lines=[TaxLineInput(label="State", rate=Decimal("6.25"))]),
    )

    estimate = estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id, amount=Decimal("500")))

    assert [(line.description, line.is_tax_line, line.sort_order) for line in estimate.line_items] == [
        ("Estimate", False, 1),
        ("State", True, 2),
        ("County", True, 3),
    ]
    assert estimate.subtotal == Decimal("500.00")
    assert estimate.tax_total == Decimal("36.25")
    assert estimate.amount == Decimal("536.25")


def test_amount_estimate_uses_description_for_its_line(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))

    estimate = estimates.create_estimate(
        uow, ctx, EstimateCreate(lead_id=lead.id, amount=Decimal("80"), description=" Gutter repair ")
    )

    assert estimate.description == "Gutter repair"
    assert [line.description for line in estimate.line_items] == ["Gutter repair"]
    assert estimate.amount == Decimal("80.00")


def test_estimate_without_lines_requires_positive_amount(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))

    with pytest.raises(ValidationError) as exc_info:
        estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id))

    assert exc_info.value.message == "Amount must be greater than 0"
    assert leads.get_lead(uow, ctx, lead.id).status == "New"


def test_blank_estimate_lines_are_dropped_but_a_charge_is_required(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))

    estimate = estimates.create_estimate(
        uow,
        ctx,
        EstimateCreate(
            lead_id=lead.id,
            line_items=[
                LineItemInput(description="  ", unit_price=Decimal("999")),
                LineItemInput(description="Paint", unit_price=Decimal("40")),
            ],
        ),
    )
    assert [line.description for line in estimate.line_items] == ["Paint"]

    with pytest.raises(ValidationError) as exc_info:
        estimates.create_estimate(
            uow,
            ctx,
            EstimateCreate(
                lead_id=lead.id,
                line_items=[
                    LineItemInput(description="", unit_price=Decimal("10")),
                    LineItemInput(description="VAT", is_tax_line=True, tax_rate=Decimal("20")),
                ],
            ),
        )
    assert exc_info.value.message == "At least one line item is required"


def test_estimate_for_lost_or_deleted_lead_is_rejected(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    lost = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))
    leads.set_lead_status(uow, ctx, lost.id, "Lost")
    deleted = leads.create_lead(uow, ctx, LeadCreate(name="Grace"))
    leads.delete_lead(uow, ctx, deleted.id)

    with pytest.raises(ConflictError):
        estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lost.id, line_items=_rough_in_lines()))
    with pytest.raises(ConflictError):
        estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=deleted.id, line_items=_rough_in_lines()))
    with pytest.raises(NotFoundError):
        estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=uuid.uuid4(), line_items=_rough_in_lines()))


def test_converted_lead_keeps_its_status_for_later_estimates(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService, sink: RecordingTransitionSink
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))
    estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id, line_items=_rough_in_lines()))
    estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id, amount=Decimal("10")))

    assert _transitions(sink) == [("Lead", "New", "Converted")]
    assert len(estimates.list_estimates(uow, ctx, lead_id=lead.id)) == 2


def test_only_draft_estimates_can_be_updated(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))
    estimate = estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id, amount=Decimal("100")))

    updated = estimates.update_estimate(
        uow,
        ctx,
        estimate.id,
        EstimateUpdate(description="Revised", line_items=_rough_in_lines()),
    )
    assert updated.description == "Revised"
    assert updated.amount == Decimal("324.75")

    estimates.send_estimate(uow, ctx, estimate.id)
    with pytest.raises(ConflictError) as exc_info:
        estimates.update_estimate(uow, ctx, estimate.id, EstimateUpdate(description="Too late"))
    assert exc_info.value.message == "Only draft estimates can be updated"


def test_draft_estimate_cannot_be_accepted(
    db_session: Session, uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))
    estimate = estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id, line_items=_rough_in_lines()))

    with pytest.raises(TransitionConflictError) as exc_info:
        estimates.accept_estimate(uow, ctx, estimate.id, _accept_request())

    assert exc_info.value.as_dict()["from_state"] == "Draft"
    assert db_session.scalar(select(func.count()).select_from(Job)) == 0


def test_accept_rejects_end_before_start(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))
    estimate = estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id, line_items=_rough_in_lines()))
    estimates.send_estimate(uow, ctx, estimate.id)

    with pytest.raises(ValidationError) as exc_info:
        estimates.accept_estimate(uow, ctx, estimate.id, _accept_request(estimated_end_at=START))

    assert exc_info.value.message == "Estimated end date must be after the start date"
    assert estimates.get_estimate(uow, ctx, estimate.id).status == "Sent"


def test_accept_is_atomic_when_job_creation_fails(
    monkeypatch: pytest.MonkeyPatch,
    db_session: Session,
    uow: UnitOfWork,
    ctx: OrgContext,
    leads: LeadService,
    estimates: EstimateService,
    sink: RecordingTransitionSink,
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))
    estimate = estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id, line_items=_rough_in_lines()))
    estimates.send_estimate(uow, ctx, estimate.id)

    def fail(*args, **kwargs):
        raise RuntimeError("milestone store unavailable")

    monkeypatch.setattr("app.business.estimates.service.milestones_from_lines", fail)

    with pytest.raises(RuntimeError):
        estimates.accept_estimate(uow, ctx, estimate.id, _accept_request())

    reloaded = estimates.get_estimate(uow, ctx, estimate.id)
    assert reloaded.status == "Sent"
    assert reloaded.accepted_at is None
    assert db_session.scalar(select(func.count()).select_from(Job)) == 0
    assert db_session.scalar(select(func.count()).select_from(Invoice)) == 0
    assert ("Estimate", "Sent", "Accepted") not in _transitions(sink)
    assert uow.pending_events == []


def test_accept_builds_milestones_from_templates(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))
    estimate = estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id, line_items=_rough_in_lines()))
    estimates.send_estimate(uow, ctx, estimate.id)
    inspection_at = START + timedelta(days=3)

    result = estimates.accept_estimate(
        uow,
        ctx,
        estimate.id,
        _accept_request(
            milestones=[
                MilestoneTemplate(title="Demo"),
                MilestoneTemplate(title="   "),
                MilestoneTemplate(title="Inspection", status="completed", occurred_at=inspection_at),
                MilestoneTemplate(title="Permit", sort_order=0),
            ]
        ),
    )

    assert [(m.title, m.sort_order, m.status, m.occurred_at) for m in result.job.milestones] == [
        ("Permit", 0, "Pending", START),
        ("Demo", 1, "Pending", START),
        ("Inspection", 2, "Completed", inspection_at),
    ]


def test_accept_without_draft_invoice_setting(
    db_session: Session, uow: UnitOfWork, ctx: OrgContext, leads: LeadService
) -> None:
    estimates = EstimateService(clock=lambda: NOW, settings_factory=lambda: Settings(accept_creates_draft_invoice=False))
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))
    estimate = estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id, line_items=_rough_in_lines()))
    estimates.send_estimate(uow, ctx, estimate.id)

    result = estimates.accept_estimate(uow, ctx, estimate.id, _accept_request())

    assert result.invoice_id is None
    assert db_session.scalar(select(func.count()).select_from(Invoice)) == 0


def test_rejected_estimate_cannot_be_accepted(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))
    estimate = estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id, line_items=_rough_in_lines()))

    rejected = estimates.reject_estimate(uow, ctx, estimate.id)
    assert rejected.status == "Rejected"
    assert rejected.rejected_at == NOW

    with pytest.raises(TransitionConflictError):
        estimates.send_estimate(uow, ctx, estimate.id)


def test_amount_estimate_accepted_with_rough_in_milestone(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))
    estimate = estimates.create_estimate(uow, ctx, EstimateCreate(lead_id=lead.id, amount=Decimal("500")))
    estimates.send_estimate(uow, ctx, estimate.id)

    result = estimates.accept_estimate(
        uow, ctx, estimate.id, _accept_request(milestones=[MilestoneTemplate(title="Rough-in")])
    )

    assert result.estimate.status == "Accepted"
    assert result.estimate.amount == Decimal("500.00")
    assert result.job.status == "Scheduled"
    assert [(m.title, m.status) for m in result.job.milestones] == [("Rough-in", "Pending")]


def test_accept_with_empty_template_list_creates_no_milestones(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))
    estimate = estimates.create_estimate(
        uow,
        ctx,
        EstimateCreate(lead_id=lead.id, line_items=[LineItemInput(description="Roof", unit_price=Decimal("900"))]),
    )
    estimates.send_estimate(uow, ctx, estimate.id)

    result = estimates.accept_estimate(uow, ctx, estimate.id, _accept_request(milestones=[]))

    assert result.job.status == "Scheduled"
    assert result.job.milestones == []


def test_accept_without_templates_derives_milestones_from_charge_lines(
    uow: UnitOfWork, ctx: OrgContext, leads: LeadService, estimates: EstimateService
) -> None:
    lead = leads.create_lead(uow, ctx, LeadCreate(name="Ada"))
    estimate = estimates.create_estimate(
        uow,
        ctx,
        EstimateCreate(lead_id=lead.id, line_items=[LineItemInput(description="Roof", unit_price=Decimal("900"))]),
    )
    estimates.send_estimate(uow, ctx, estimate.id)

    result = estimates.accept_estimate(uow, ctx, estimate.id, _accept_request())

    assert [milestone.title for milestone in result.job.milestones] == ["Roof"]
