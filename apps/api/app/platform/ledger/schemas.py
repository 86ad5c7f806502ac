from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class LineItemInput(BaseModel):
    """Charge or tax line as submitted by a caller.

    Rules such as quantity > 0 are enforced by the ledger so every path reports them the same way.
    """

    description: str | None = None
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = Decimal("0")
    is_tax_line: bool = False
    tax_rate: Decimal | None = None
    sort_order: int = 0


class LineItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    is_tax_line: bool
    tax_rate: Decimal | None
    sort_order: int
    line_total: Decimal


class TaxLineInput(BaseModel):
    label: str | None = None
    rate: Decimal = Decimal("0")


class TaxLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    label: str
    rate: Decimal
