from app.platform.ledger.line_items import (
    BlankDescriptionPolicy,
    LedgerLine,
    LineTotals,
    build_line_items,
    calculate_totals,
    has_charge_line,
    line_amount,
    line_amounts,
    round_money,
)
from app.platform.ledger.models import LineItemMixin, line_item_payloads
from app.platform.ledger.schemas import LineItemInput, LineItemRead, TaxLineInput, TaxLineRead
from app.platform.ledger.tax_lines import TaxLineDraft, TaxLineOwner, build_tax_lines

__all__ = [
    "BlankDescriptionPolicy",
    "LedgerLine",
    "LineTotals",
    "build_line_items",
    "calculate_totals",
    "has_charge_line",
    "line_amount",
    "line_amounts",
    "round_money",
    "LineItemMixin",
    "line_item_payloads",
    "LineItemInput",
    "LineItemRead",
    "TaxLineInput",
    "TaxLineRead",
    "TaxLineDraft",
    "TaxLineOwner",
    "build_tax_lines",
]
