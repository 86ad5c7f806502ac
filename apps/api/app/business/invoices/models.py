from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.business.jobs.models import Job
from app.core.database import Base
from app.core.types import UTCDateTime, utcnow
from app.platform.ledger.models import LineItemMixin


class InvoiceStatus(str, Enum):
    DRAFT = "Draft"
    ISSUED = "Issued"
    PAID = "Paid"
    OVERDUE = "Overdue"


class Invoice(Base):
    __tablename__ = "pipeline_invoice"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("pipeline_job.id", ondelete="RESTRICT"),
        nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    tax_total: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=InvoiceStatus.DRAFT.value)
    due_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    issued_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    overdue_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    job: Mapped[Job] = relationship(Job)
    line_items: Mapped[list[InvoiceLineItem]] = relationship(
        "app.business.invoices.models.InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.sort_order",
    )

    __mapper_args__ = {"version_id_col": row_version}
    __table_args__ = (
        Index("ix_pipeline_invoice_org_job", "organization_id", "job_id"),
        Index("ix_pipeline_invoice_org_status_due", "organization_id", "status", "due_at"),
    )


class InvoiceLineItem(LineItemMixin, Base):
    __tablename__ = "pipeline_invoice_line_item"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("pipeline_invoice.id", ondelete="CASCADE"),
        nullable=False,
    )

    invoice: Mapped[Invoice] = relationship("app.business.invoices.models.Invoice", back_populates="line_items")

    __table_args__ = (Index("ix_pipeline_invoice_line_item_invoice", "invoice_id"),)
