from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from app.platform.errors import ValidationError
from app.platform.ledger.line_items import RATE_QUANT
from app.platform.ledger.schemas import TaxLineInput


@dataclass(frozen=True, slots=True)
class TaxLineOwner:
    """Exactly one of lead_id / company_id."""

    lead_id: uuid.UUID | None = None
    company_id: uuid.UUID | None = None

    def __post_init__(self) -> None:
        if (self.lead_id is None) == (self.company_id is None):
            raise ValueError("tax line owner must be exactly one of lead or company")

    @classmethod
    def for_lead(cls, lead_id: uuid.UUID) -> TaxLineOwner:
        return cls(lead_id=lead_id)

    @classmethod
    def for_company(cls, company_id: uuid.UUID) -> TaxLineOwner:
        return cls(company_id=company_id)


@dataclass(frozen=True, slots=True)
class TaxLineDraft:
    label: str
    rate: Decimal
    lead_id: uuid.UUID | None
    company_id: uuid.UUID | None


def build_tax_lines(requests: Iterable[TaxLineInput] | None, owner: TaxLineOwner) -> list[TaxLineDraft]:
    if requests is None:
        return []

    drafts: list[TaxLineDraft] = []
    for request in requests:
        label = (request.label or "").strip()
        if not label:
            continue
        if request.rate < 0:
            raise ValidationError("Tax rate must be zero or greater")
        drafts.append(
            TaxLineDraft(
                label=label,
                rate=Decimal(request.rate).quantize(RATE_QUANT, rounding=ROUND_HALF_UP),
                lead_id=owner.lead_id,
                company_id=owner.company_id,
            )
        )
    return drafts
