from app.platform.tenancy.context import OrgContext
from app.platform.tenancy.repository import TenantRepository

__all__ = [
    "OrgContext",
    "TenantRepository",
]
