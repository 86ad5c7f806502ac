from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.business.invoices.models import Invoice, InvoiceLineItem, InvoiceStatus
from app.business.invoices.repository import InvoiceRepository
from app.business.invoices.schemas import InvoiceCreate, InvoiceRead, InvoiceUpdate, OverdueSweepResult
from app.business.jobs.repository import JobRepository
from app.business.lifecycle import EntityKind, invoice_machine
from app.business.normalize import clean_text
from app.core.types import as_utc, utcnow
from app.platform.errors import ConflictError, ValidationError
from app.platform.ledger import (
    BlankDescriptionPolicy,
    LedgerLine,
    LineItemInput,
    build_line_items,
    calculate_totals,
    line_item_payloads,
)
from app.platform.tenancy import OrgContext
from app.platform.unit_of_work import UnitOfWork


logger = logging.getLogger("app.pipeline.invoices")


def apply_invoice_lines(invoice: Invoice, lines: Sequence[LedgerLine]) -> None:
    """Replace the invoice's lines and recompute its totals."""
    rows: list[InvoiceLineItem] = []
    for line in lines:
        row = InvoiceLineItem(id=uuid.uuid4())
        row.apply_ledger_line(line)
        rows.append(row)
    invoice.line_items = rows

    totals = calculate_totals(lines)
    invoice.subtotal = totals.subtotal
    invoice.tax_total = totals.tax_total
    invoice.amount = totals.total


def _invoice_lines(requests: Sequence[LineItemInput] | None) -> list[LedgerLine]:
    if not requests:
        raise ValidationError("At least one line item is required")
    return build_line_items(requests, blank_description=BlankDescriptionPolicy.REJECT)


@dataclass(slots=True)
class InvoiceService:
    invoice_repository: InvoiceRepository = InvoiceRepository()
    job_repository: JobRepository = JobRepository()
    clock: Callable[[], datetime] = utcnow

    def create_invoice(self, uow: UnitOfWork, ctx: OrgContext, payload: InvoiceCreate) -> InvoiceRead:
        lines = _invoice_lines(payload.line_items)
        now = self.clock()
        with uow.transaction():
            job = self.job_repository.get(uow.session, ctx, payload.job_id)
            invoice = Invoice(
                id=uuid.uuid4(),
                job_id=job.id,
                notes=clean_text(payload.notes),
                status=InvoiceStatus.DRAFT.value,
                due_at=as_utc(payload.due_at),
                created_at=now,
                updated_at=now,
            )
            apply_invoice_lines(invoice, lines)
            self.invoice_repository.add(uow.session, ctx, invoice)

        return self.get_invoice(uow, ctx, invoice.id)

    def update_invoice(
        self,
        uow: UnitOfWork,
        ctx: OrgContext,
        invoice_id: uuid.UUID,
        payload: InvoiceUpdate,
    ) -> InvoiceRead:
        changes = payload.model_dump(exclude_unset=True)
        with uow.transaction():
            invoice = self.invoice_repository.get(uow.session, ctx, invoice_id, selectinload(Invoice.line_items))
            if invoice.status != InvoiceStatus.DRAFT.value:
                raise ConflictError("Only draft invoices can be updated")

            if payload.due_at is not None:
                invoice.due_at = as_utc(payload.due_at)
            if "notes" in changes:
                invoice.notes = clean_text(payload.notes)
            if payload.line_items is not None:
                apply_invoice_lines(invoice, _invoice_lines(payload.line_items))
            invoice.updated_at = self.clock()

        return self.get_invoice(uow, ctx, invoice_id)

    def delete_invoice(self, uow: UnitOfWork, ctx: OrgContext, invoice_id: uuid.UUID) -> None:
        with uow.transaction():
            invoice = self.invoice_repository.get(uow.session, ctx, invoice_id)
            if invoice.status == InvoiceStatus.PAID.value:
                raise ConflictError("Cannot delete a paid invoice")
            uow.session.delete(invoice)

    def issue_invoice(
        self,
        uow: UnitOfWork,
        ctx: OrgContext,
        invoice_id: uuid.UUID,
        *,
        due_at: datetime | None = None,
    ) -> InvoiceRead:
        with uow.transaction():
            invoice = self.invoice_repository.get(uow.session, ctx, invoice_id)
            if self.job_repository.find(uow.session, ctx, invoice.job_id) is None:
                raise ConflictError("Cannot issue an invoice whose job no longer exists")

            # due date is applied before the transition so the default only fills a gap
            if due_at is not None:
                invoice.due_at = as_utc(due_at)
            record = invoice_machine.transition(invoice, InvoiceStatus.ISSUED, self.clock())
            uow.record_transition(EntityKind.INVOICE.value, invoice.id, invoice.organization_id, record)

        return self.get_invoice(uow, ctx, invoice_id)

    def mark_invoice_paid(self, uow: UnitOfWork, ctx: OrgContext, invoice_id: uuid.UUID) -> InvoiceRead:
        with uow.transaction():
            invoice = self.invoice_repository.get(uow.session, ctx, invoice_id)
            record = invoice_machine.transition(invoice, InvoiceStatus.PAID, self.clock())
            uow.record_transition(EntityKind.INVOICE.value, invoice.id, invoice.organization_id, record)

        return self.get_invoice(uow, ctx, invoice_id)

    def sweep_overdue_invoices(
        self,
        uow: UnitOfWork,
        ctx: OrgContext,
        now: datetime | None = None,
    ) -> OverdueSweepResult:
        swept_at = as_utc(now) or self.clock()
        invoice_ids: list[uuid.UUID] = []
        with uow.transaction():
            for invoice in self.invoice_repository.list_past_due(uow.session, ctx, swept_at):
                record = invoice_machine.transition(invoice, InvoiceStatus.OVERDUE, swept_at)
                uow.record_transition(EntityKind.INVOICE.value, invoice.id, invoice.organization_id, record)
                invoice_ids.append(invoice.id)

        logger.info("pipeline.overdue_sweep", extra={"event_count": len(invoice_ids)})
        return OverdueSweepResult(swept_at=swept_at, invoice_ids=invoice_ids)

    def get_invoice(self, uow: UnitOfWork, ctx: OrgContext, invoice_id: uuid.UUID) -> InvoiceRead:
        invoice = self.invoice_repository.get(uow.session, ctx, invoice_id, selectinload(Invoice.line_items))
        return self._to_invoice_read(invoice)

    def list_invoices(self, uow: UnitOfWork, ctx: OrgContext, *, job_id: uuid.UUID | None = None) -> list[InvoiceRead]:
        stmt = select(Invoice).options(selectinload(Invoice.line_items)).order_by(Invoice.created_at.desc())
        if job_id is not None:
            stmt = stmt.where(Invoice.job_id == job_id)
        return [self._to_invoice_read(row) for row in self.invoice_repository.list(uow.session, ctx, stmt)]

    def _to_invoice_read(self, invoice: Invoice) -> InvoiceRead:
        payload = {
            "id": invoice.id,
            "organization_id": invoice.organization_id,
            "job_id": invoice.job_id,
            "notes": invoice.notes,
            "subtotal": invoice.subtotal,
            "tax_total": invoice.tax_total,
            "amount": invoice.amount,
            "status": invoice.status,
            "due_at": invoice.due_at,
            "issued_at": invoice.issued_at,
            "paid_at": invoice.paid_at,
            "overdue_at": invoice.overdue_at,
            "created_at": invoice.created_at,
            "updated_at": invoice.updated_at,
            "row_version": invoice.row_version,
            "line_items": line_item_payloads(invoice.line_items),
        }
        return InvoiceRead.model_validate(payload)


invoice_service = InvoiceService()
