from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.platform.ledger.line_items import LedgerLine, line_amounts


class LineItemMixin:
    """Columns shared by estimate and invoice line items."""

    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False, default=Decimal("1"))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    is_tax_line: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_ledger_line(self) -> LedgerLine:
        return LedgerLine(
            description=self.description,
            quantity=Decimal(self.quantity),
            unit_price=Decimal(self.unit_price),
            is_tax_line=self.is_tax_line,
            tax_rate=Decimal(self.tax_rate) if self.tax_rate is not None else None,
            sort_order=self.sort_order,
        )

    def apply_ledger_line(self, line: LedgerLine) -> None:
        self.description = line.description
        self.quantity = line.quantity
        self.unit_price = line.unit_price
        self.is_tax_line = line.is_tax_line
        self.tax_rate = line.tax_rate
        self.sort_order = line.sort_order


def line_item_payloads(rows: Sequence[LineItemMixin]) -> list[dict[str, Any]]:
    """Read payloads for stored lines, each with its display amount."""
    amounts = line_amounts([row.to_ledger_line() for row in rows])
    return [
        {
            "id": row.id,  # type: ignore[attr-defined]
            "description": row.description,
            "quantity": row.quantity,
            "unit_price": row.unit_price,
            "is_tax_line": row.is_tax_line,
            "tax_rate": row.tax_rate,
            "sort_order": row.sort_order,
            "line_total": amount,
        }
        for row, amount in zip(rows, amounts)
    ]
