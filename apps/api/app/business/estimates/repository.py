from __future__ import annotations

from app.business.estimates.models import Estimate
from app.platform.tenancy import TenantRepository


class EstimateRepository(TenantRepository[Estimate]):
    model = Estimate
    label = "Estimate"
