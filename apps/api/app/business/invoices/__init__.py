from app.business.invoices.models import Invoice, InvoiceLineItem, InvoiceStatus
from app.business.invoices.schemas import (
    InvoiceCreate,
    InvoiceRead,
    InvoiceUpdate,
    IssueInvoiceRequest,
    OverdueSweepResult,
)

__all__ = [
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "InvoiceCreate",
    "InvoiceRead",
    "InvoiceUpdate",
    "IssueInvoiceRequest",
    "OverdueSweepResult",
]
