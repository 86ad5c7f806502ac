from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.business.customers.models import Company, Lead, LeadStatus
from app.business.customers.repository import LeadRepository
from app.business.estimates.models import Estimate, EstimateLineItem, EstimateStatus
from app.business.estimates.repository import EstimateRepository
from app.business.estimates.schemas import (
    AcceptEstimateRequest,
    AcceptEstimateResult,
    EstimateCreate,
    EstimateRead,
    EstimateUpdate,
)
from app.business.invoices.models import Invoice, InvoiceStatus
from app.business.invoices.repository import InvoiceRepository
from app.business.invoices.service import apply_invoice_lines
from app.business.jobs.models import Job, JobStatus
from app.business.jobs.repository import JobRepository
from app.business.jobs.service import JobService, build_milestones, ensure_schedule, milestones_from_lines
from app.business.lifecycle import EntityKind, estimate_machine, lead_machine
from app.business.normalize import clean_text
from app.core.config import Settings, get_settings
from app.core.types import as_utc, utcnow
from app.platform.errors import ConflictError, ValidationError
from app.platform.ledger import (
    BlankDescriptionPolicy,
    LedgerLine,
    LineItemInput,
    build_line_items,
    calculate_totals,
    has_charge_line,
    line_item_payloads,
)
from app.platform.tenancy import OrgContext
from app.platform.unit_of_work import UnitOfWork


FALLBACK_LINE_DESCRIPTION = "Estimate"
ACCEPTED_FALLBACK_DESCRIPTION = "Estimate approved"


def _estimate_lines(requests: Sequence[LineItemInput]) -> list[LedgerLine]:
    lines = build_line_items(requests, blank_description=BlankDescriptionPolicy.DROP)
    if not has_charge_line(lines):
        raise ValidationError("At least one line item is required")
    return lines


def _amount_lines(lead: Lead, description: str | None, amount: Decimal | None) -> list[LineItemInput]:
    """Single charge line for `amount` followed by the lead's and its company's tax lines."""
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be greater than 0")

    requests = [
        LineItemInput(
            description=description or FALLBACK_LINE_DESCRIPTION,
            quantity=Decimal("1"),
            unit_price=amount,
            sort_order=1,
        )
    ]
    tax_lines = list(lead.tax_lines)
    if lead.company_entity is not None:
        tax_lines.extend(lead.company_entity.tax_lines)
    for sort_order, tax_line in enumerate(tax_lines, start=2):
        requests.append(
            LineItemInput(description=tax_line.label, is_tax_line=True, tax_rate=tax_line.rate, sort_order=sort_order)
        )
    return requests


def apply_estimate_lines(estimate: Estimate, lines: Sequence[LedgerLine]) -> None:
    rows: list[EstimateLineItem] = []
    for line in lines:
        row = EstimateLineItem(id=uuid.uuid4())
        row.apply_ledger_line(line)
        rows.append(row)
    estimate.line_items = rows

    totals = calculate_totals(lines)
    estimate.subtotal = totals.subtotal
    estimate.tax_total = totals.tax_total
    estimate.amount = totals.total


@dataclass(slots=True)
class EstimateService:
    estimate_repository: EstimateRepository = EstimateRepository()
    lead_repository: LeadRepository = LeadRepository()
    job_repository: JobRepository = JobRepository()
    invoice_repository: InvoiceRepository = InvoiceRepository()
    job_service: JobService = field(default_factory=JobService)
    settings_factory: Callable[[], Settings] = get_settings
    clock: Callable[[], datetime] = utcnow

    def create_estimate(self, uow: UnitOfWork, ctx: OrgContext, payload: EstimateCreate) -> EstimateRead:
        description = clean_text(payload.description)
        now = self.clock()
        with uow.transaction():
            lead = self.lead_repository.get(
                uow.session,
                ctx,
                payload.lead_id,
                selectinload(Lead.tax_lines),
                selectinload(Lead.company_entity).selectinload(Company.tax_lines),
            )
            if lead.is_deleted:
                raise ConflictError("Cannot create an estimate for a deleted lead")
            if lead.status == LeadStatus.LOST.value:
                raise ConflictError("Cannot create an estimate for a lost lead")

            requests = payload.line_items or _amount_lines(lead, description, payload.amount)
            lines = _estimate_lines(requests)

            if lead.status == LeadStatus.NEW.value:
                record = lead_machine.transition(lead, LeadStatus.CONVERTED, now)
                uow.record_transition(EntityKind.LEAD.value, lead.id, lead.organization_id, record)

            estimate = Estimate(
                id=uuid.uuid4(),
                lead_id=lead.id,
                description=description,
                status=EstimateStatus.DRAFT.value,
                created_at=now,
                updated_at=now,
            )
            apply_estimate_lines(estimate, lines)
            self.estimate_repository.add(uow.session, ctx, estimate)

        return self.get_estimate(uow, ctx, estimate.id)

    def send_estimate(self, uow: UnitOfWork, ctx: OrgContext, estimate_id: uuid.UUID) -> EstimateRead:
        return self._transition(uow, ctx, estimate_id, EstimateStatus.SENT)

    def reject_estimate(self, uow: UnitOfWork, ctx: OrgContext, estimate_id: uuid.UUID) -> EstimateRead:
        return self._transition(uow, ctx, estimate_id, EstimateStatus.REJECTED)

    def update_estimate(
        self,
        uow: UnitOfWork,
        ctx: OrgContext,
        estimate_id: uuid.UUID,
        payload: EstimateUpdate,
    ) -> EstimateRead:
        with uow.transaction():
            estimate = self.estimate_repository.get(uow.session, ctx, estimate_id, selectinload(Estimate.line_items))
            if estimate.status != EstimateStatus.DRAFT.value:
                raise ConflictError("Only draft estimates can be updated")

            if payload.description is not None:
                estimate.description = clean_text(payload.description)
            if payload.line_items is not None:
                apply_estimate_lines(estimate, _estimate_lines(payload.line_items))
            estimate.updated_at = self.clock()

        return self.get_estimate(uow, ctx, estimate_id)

    def accept_estimate(
        self,
        uow: UnitOfWork,
        ctx: OrgContext,
        estimate_id: uuid.UUID,
        payload: AcceptEstimateRequest,
    ) -> AcceptEstimateResult:
        """Accept a sent estimate and schedule its job in one unit of work.

        Milestones come from the supplied templates, or from the estimate's charge lines when
        none are given. A draft invoice mirroring the estimate is created when enabled in settings.
        """

        start_at = as_utc(payload.start_at)
        estimated_end_at = as_utc(payload.estimated_end_at)
        now = self.clock()
        invoice_id: uuid.UUID | None = None

        with uow.transaction():
            estimate = self.estimate_repository.get(uow.session, ctx, estimate_id, selectinload(Estimate.line_items))
            ensure_schedule(start_at, estimated_end_at)
            self.lead_repository.get(uow.session, ctx, estimate.lead_id)

            record = estimate_machine.transition(estimate, EstimateStatus.ACCEPTED, now)
            uow.record_transition(EntityKind.ESTIMATE.value, estimate.id, estimate.organization_id, record)

            lines = [row.to_ledger_line() for row in estimate.line_items] or build_line_items(
                [
                    LineItemInput(
                        description=estimate.description or ACCEPTED_FALLBACK_DESCRIPTION,
                        unit_price=estimate.amount,
                        sort_order=1,
                    )
                ],
                blank_description=BlankDescriptionPolicy.DROP,
            )

            job = Job(
                id=uuid.uuid4(),
                lead_id=estimate.lead_id,
                estimate_id=estimate.id,
                description=estimate.description,
                status=JobStatus.SCHEDULED.value,
                start_at=start_at,
                estimated_end_at=estimated_end_at,
                created_at=now,
                updated_at=now,
            )
            if payload.milestones is not None:
                job.milestones = build_milestones(payload.milestones, start_at, now)
            else:
                job.milestones = milestones_from_lines(lines, start_at, now)
            self.job_repository.add(uow.session, ctx, job)

            if self.settings_factory().accept_creates_draft_invoice:
                invoice = Invoice(
                    id=uuid.uuid4(),
                    job_id=job.id,
                    status=InvoiceStatus.DRAFT.value,
                    created_at=now,
                    updated_at=now,
                )
                apply_invoice_lines(invoice, lines)
                self.invoice_repository.add(uow.session, ctx, invoice)
                invoice_id = invoice.id

        return AcceptEstimateResult(
            estimate=self.get_estimate(uow, ctx, estimate_id),
            job=self.job_service.get_job(uow, ctx, job.id),
            invoice_id=invoice_id,
        )

    def get_estimate(self, uow: UnitOfWork, ctx: OrgContext, estimate_id: uuid.UUID) -> EstimateRead:
        estimate = self.estimate_repository.get(uow.session, ctx, estimate_id, selectinload(Estimate.line_items))
        return self._to_estimate_read(estimate)

    def list_estimates(
        self,
        uow: UnitOfWork,
        ctx: OrgContext,
        *,
        lead_id: uuid.UUID | None = None,
    ) -> list[EstimateRead]:
        stmt = select(Estimate).options(selectinload(Estimate.line_items)).order_by(Estimate.created_at.desc())
        if lead_id is not None:
            stmt = stmt.where(Estimate.lead_id == lead_id)
        return [self._to_estimate_read(row) for row in self.estimate_repository.list(uow.session, ctx, stmt)]

    def _transition(
        self,
        uow: UnitOfWork,
        ctx: OrgContext,
        estimate_id: uuid.UUID,
        target: EstimateStatus,
    ) -> EstimateRead:
        with uow.transaction():
            estimate = self.estimate_repository.get(uow.session, ctx, estimate_id)
            record = estimate_machine.transition(estimate, target, self.clock())
            uow.record_transition(EntityKind.ESTIMATE.value, estimate.id, estimate.organization_id, record)

        return self.get_estimate(uow, ctx, estimate_id)

    def _to_estimate_read(self, estimate: Estimate) -> EstimateRead:
        payload = {
            "id": estimate.id,
            "organization_id": estimate.organization_id,
            "lead_id": estimate.lead_id,
            "description": estimate.description,
            "subtotal": estimate.subtotal,
            "tax_total": estimate.tax_total,
            "amount": estimate.amount,
            "status": estimate.status,
            "sent_at": estimate.sent_at,
            "accepted_at": estimate.accepted_at,
            "rejected_at": estimate.rejected_at,
            "created_at": estimate.created_at,
            "updated_at": estimate.updated_at,
            "row_version": estimate.row_version,
            "line_items": line_item_payloads(estimate.line_items),
        }
        return EstimateRead.model_validate(payload)


estimate_service = EstimateService()
