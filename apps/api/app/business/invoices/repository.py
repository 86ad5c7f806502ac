from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.business.invoices.models import Invoice, InvoiceStatus
from app.platform.tenancy import OrgContext, TenantRepository


class InvoiceRepository(TenantRepository[Invoice]):
    model = Invoice
    label = "Invoice"

    def list_past_due(self, session: Session, ctx: OrgContext, now: datetime) -> list[Invoice]:
        stmt = (
            select(Invoice)
            .options(selectinload(Invoice.line_items))
            .where(
                Invoice.status == InvoiceStatus.ISSUED.value,
                Invoice.due_at.is_not(None),
                Invoice.due_at < now,
            )
            .order_by(Invoice.due_at.asc())
        )
        return self.list(session, ctx, stmt)
