from app.business.customers.models import Company, Lead, LeadStatus, TaxLine
from app.business.customers.schemas import (
    CompanyCreate,
    CompanyRead,
    CompanyUpdate,
    LeadCreate,
    LeadRead,
    LeadStatusUpdate,
    LeadUpdate,
)

__all__ = [
    "Company",
    "Lead",
    "LeadStatus",
    "TaxLine",
    "CompanyCreate",
    "CompanyRead",
    "CompanyUpdate",
    "LeadCreate",
    "LeadRead",
    "LeadStatusUpdate",
    "LeadUpdate",
]
