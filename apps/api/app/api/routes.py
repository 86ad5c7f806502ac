from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from app.business.customers.api import companies_router, leads_router
from app.business.estimates.api import router as estimates_router
from app.business.invoices.api import router as invoices_router
from app.business.jobs.api import router as jobs_router
from app.core.auth import AuthUser, get_current_user
from app.core.config import get_settings
from app.core.rbac import PIPELINE_ROLE, require_permissions
from app.metrics import generate_metrics_payload, metrics_content_type

router = APIRouter()
pipeline_access = [Depends(require_permissions(PIPELINE_ROLE))]
router.include_router(leads_router, dependencies=pipeline_access)
router.include_router(companies_router, dependencies=pipeline_access)
router.include_router(estimates_router, dependencies=pipeline_access)
router.include_router(jobs_router, dependencies=pipeline_access)
router.include_router(invoices_router, dependencies=pipeline_access)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(user: AuthUser = Depends(get_current_user)) -> dict[str, str | list[str] | None]:
    return {
        "sub": user.sub,
        "roles": user.roles,
        "organization_id": user.organization_id,
    }


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if "system.metrics.read" not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing permission: system.metrics.read")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
