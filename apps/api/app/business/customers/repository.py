from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.business.customers.models import Company, Lead
from app.platform.tenancy import OrgContext, TenantRepository


class LeadRepository(TenantRepository[Lead]):
    model = Lead
    label = "Lead"


class CompanyRepository(TenantRepository[Company]):
    model = Company
    label = "Company"

    def find_by_name(
        self,
        session: Session,
        ctx: OrgContext,
        name: str,
        *,
        include_deleted: bool = False,
    ) -> Company | None:
        stmt = self.scoped(ctx).where(func.lower(Company.name) == name.lower())
        if not include_deleted:
            stmt = stmt.where(Company.is_deleted.is_(False))
        # live rows first so a soft-deleted duplicate never shadows an active company
        stmt = stmt.order_by(Company.is_deleted.asc(), Company.created_at.asc())
        return session.scalars(stmt).first()
