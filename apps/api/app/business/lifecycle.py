"""State machines for the four pipeline entities.

Each machine is a permit table plus a pure apply function. Callers pick one through
`EntityKind`; nothing else writes an entity's `status` column.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from app.business.customers.models import Lead, LeadStatus
from app.business.estimates.models import Estimate, EstimateStatus
from app.business.invoices.models import Invoice, InvoiceStatus
from app.business.jobs.models import Job, JobStatus
from app.platform.statemachine import PermitTable, StateMachine, TransitionRecord


INVOICE_DUE_PERIOD = timedelta(days=30)


class EntityKind(str, Enum):
    LEAD = "Lead"
    ESTIMATE = "Estimate"
    JOB = "Job"
    INVOICE = "Invoice"


def _entity_id(entity: Any) -> Any:
    return entity.id


def _apply_lead(lead: Lead, from_state: LeadStatus, to_state: LeadStatus, now: datetime) -> None:
    lead.status = to_state.value
    if to_state is LeadStatus.LOST:
        lead.lost_at = now
    elif to_state is LeadStatus.NEW:
        lead.lost_at = None
    lead.updated_at = now


def _apply_estimate(estimate: Estimate, from_state: EstimateStatus, to_state: EstimateStatus, now: datetime) -> None:
    estimate.status = to_state.value
    if to_state is EstimateStatus.SENT:
        estimate.sent_at = now
    elif to_state is EstimateStatus.ACCEPTED:
        estimate.accepted_at = now
    elif to_state is EstimateStatus.REJECTED:
        estimate.rejected_at = now
    estimate.updated_at = now


def _apply_job(job: Job, from_state: JobStatus, to_state: JobStatus, now: datetime) -> None:
    job.status = to_state.value
    if to_state is JobStatus.IN_PROGRESS:
        job.started_at = now
    elif to_state is JobStatus.COMPLETED:
        job.completed_at = now
    elif to_state is JobStatus.CANCELLED:
        job.cancelled_at = now
    job.updated_at = now


def _apply_invoice(invoice: Invoice, from_state: InvoiceStatus, to_state: InvoiceStatus, now: datetime) -> None:
    invoice.status = to_state.value
    if to_state is InvoiceStatus.ISSUED:
        invoice.issued_at = now
        if invoice.due_at is None:
            invoice.due_at = now + INVOICE_DUE_PERIOD
    elif to_state is InvoiceStatus.PAID:
        invoice.paid_at = now
    elif to_state is InvoiceStatus.OVERDUE:
        invoice.overdue_at = now
    invoice.updated_at = now


LEAD_PERMITS = (
    PermitTable()
    .permit(LeadStatus.NEW, LeadStatus.LOST)
    .permit(LeadStatus.NEW, LeadStatus.CONVERTED)
    .permit(LeadStatus.LOST, LeadStatus.NEW)
)

ESTIMATE_PERMITS = (
    PermitTable()
    .permit(EstimateStatus.DRAFT, EstimateStatus.SENT)
    .permit(EstimateStatus.SENT, EstimateStatus.ACCEPTED)
    .permit(EstimateStatus.SENT, EstimateStatus.REJECTED)
    .permit(EstimateStatus.DRAFT, EstimateStatus.REJECTED)
)

JOB_PERMITS = (
    PermitTable()
    .permit(JobStatus.SCHEDULED, JobStatus.IN_PROGRESS)
    .permit(JobStatus.IN_PROGRESS, JobStatus.COMPLETED)
    .permit(JobStatus.IN_PROGRESS, JobStatus.CANCELLED)
    .permit(JobStatus.SCHEDULED, JobStatus.CANCELLED)
)

# Issued -> Overdue is driven by the overdue sweep.
INVOICE_PERMITS = (
    PermitTable()
    .permit(InvoiceStatus.DRAFT, InvoiceStatus.ISSUED)
    .permit(InvoiceStatus.ISSUED, InvoiceStatus.PAID)
    .permit(InvoiceStatus.OVERDUE, InvoiceStatus.PAID)
    .permit(InvoiceStatus.ISSUED, InvoiceStatus.OVERDUE)
)


lead_machine: StateMachine[Lead, LeadStatus] = StateMachine(
    entity_type=EntityKind.LEAD.value,
    permits=LEAD_PERMITS,
    get_state=lambda lead: LeadStatus(lead.status),
    apply=_apply_lead,
    get_id=_entity_id,
)

estimate_machine: StateMachine[Estimate, EstimateStatus] = StateMachine(
    entity_type=EntityKind.ESTIMATE.value,
    permits=ESTIMATE_PERMITS,
    get_state=lambda estimate: EstimateStatus(estimate.status),
    apply=_apply_estimate,
    get_id=_entity_id,
)

job_machine: StateMachine[Job, JobStatus] = StateMachine(
    entity_type=EntityKind.JOB.value,
    permits=JOB_PERMITS,
    get_state=lambda job: JobStatus(job.status),
    apply=_apply_job,
    get_id=_entity_id,
)

invoice_machine: StateMachine[Invoice, InvoiceStatus] = StateMachine(
    entity_type=EntityKind.INVOICE.value,
    permits=INVOICE_PERMITS,
    get_state=lambda invoice: InvoiceStatus(invoice.status),
    apply=_apply_invoice,
    idempotent_targets=frozenset({InvoiceStatus.PAID}),
    get_id=_entity_id,
)


MACHINES: dict[EntityKind, StateMachine[Any, Any]] = {
    EntityKind.LEAD: lead_machine,
    EntityKind.ESTIMATE: estimate_machine,
    EntityKind.JOB: job_machine,
    EntityKind.INVOICE: invoice_machine,
}


def machine_for(kind: EntityKind) -> StateMachine[Any, Any]:
    return MACHINES[kind]


def transition(kind: EntityKind, entity: Any, to_state: Enum, now: datetime) -> TransitionRecord:
    return machine_for(kind).transition(entity, to_state, now)
