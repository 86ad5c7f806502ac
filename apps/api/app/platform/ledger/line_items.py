from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from app.platform.errors import ValidationError
from app.platform.ledger.schemas import LineItemInput


MONEY_QUANT = Decimal("0.01")
RATE_QUANT = Decimal("0.0001")


class BlankDescriptionPolicy(str, Enum):
    """How a line with a blank description is handled.

    Estimates drop such lines without complaint while invoices reject them. Both
    behaviors are kept until product decides on one.
    """

    DROP = "drop"
    REJECT = "reject"


@dataclass(frozen=True, slots=True)
class LedgerLine:
    description: str
    quantity: Decimal
    unit_price: Decimal
    is_tax_line: bool
    tax_rate: Decimal | None
    sort_order: int


@dataclass(frozen=True, slots=True)
class LineTotals:
    subtotal: Decimal
    tax_total: Decimal
    total: Decimal


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def build_line_items(
    requests: Iterable[LineItemInput],
    *,
    blank_description: BlankDescriptionPolicy,
) -> list[LedgerLine]:
    """Validate and normalize requested lines, returning them stable-sorted by sort order."""

    lines: list[LedgerLine] = []
    for request in requests:
        description = (request.description or "").strip()
        if not description:
            if blank_description is BlankDescriptionPolicy.DROP:
                continue
            raise ValidationError("Line item description is required")

        if request.is_tax_line:
            if request.tax_rate is None or request.tax_rate < 0:
                raise ValidationError("Tax lines require a valid rate")
            lines.append(
                LedgerLine(
                    description=description,
                    quantity=Decimal("1"),
                    unit_price=Decimal("0"),
                    is_tax_line=True,
                    tax_rate=Decimal(request.tax_rate).quantize(RATE_QUANT, rounding=ROUND_HALF_UP),
                    sort_order=request.sort_order,
                )
            )
            continue

        if request.quantity <= 0:
            raise ValidationError("Line item quantity must be greater than 0")
        if request.unit_price < 0:
            raise ValidationError("Line item price must be greater than or equal to 0")
        lines.append(
            LedgerLine(
                description=description,
                quantity=Decimal(request.quantity),
                unit_price=Decimal(request.unit_price),
                is_tax_line=False,
                tax_rate=None,
                sort_order=request.sort_order,
            )
        )

    # sorted() is stable, equal sort orders keep request order
    return sorted(lines, key=lambda line: line.sort_order)


def has_charge_line(lines: Iterable[LedgerLine]) -> bool:
    return any(not line.is_tax_line for line in lines)


def _raw_subtotal(lines: Sequence[LedgerLine]) -> Decimal:
    return sum(
        (Decimal(line.quantity) * Decimal(line.unit_price) for line in lines if not line.is_tax_line),
        Decimal("0"),
    )


def calculate_totals(lines: Sequence[LedgerLine]) -> LineTotals:
    """Subtotal and tax total are rounded separately before they are added."""

    subtotal = _raw_subtotal(lines)
    tax_total = sum(
        (subtotal * Decimal(line.tax_rate or 0) / Decimal("100") for line in lines if line.is_tax_line),
        Decimal("0"),
    )
    rounded_subtotal = round_money(subtotal)
    rounded_tax = round_money(tax_total)
    return LineTotals(subtotal=rounded_subtotal, tax_total=rounded_tax, total=rounded_subtotal + rounded_tax)


def line_amount(line: LedgerLine, subtotal: Decimal) -> Decimal:
    if line.is_tax_line:
        return round_money(Decimal(subtotal) * Decimal(line.tax_rate or 0) / Decimal("100"))
    return round_money(Decimal(line.quantity) * Decimal(line.unit_price))


def line_amounts(lines: Sequence[LedgerLine]) -> list[Decimal]:
    """Display amount per line; tax lines are computed on the rounded charge subtotal."""

    subtotal = calculate_totals(lines).subtotal
    return [line_amount(line, subtotal) for line in lines]
