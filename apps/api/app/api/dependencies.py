from __future__ import annotations

import uuid

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.context import get_correlation_id
from app.core.auth import AuthUser, get_current_user
from app.core.config import get_settings
from app.core.database import get_db
from app.events import EventBusTransitionSink
from app.platform.tenancy import OrgContext
from app.platform.unit_of_work import UnitOfWork


def get_org_context(
    request: Request,
    auth_user: AuthUser = Depends(get_current_user),
    organization_header: str | None = Header(default=None, alias="x-organization-id"),
) -> OrgContext:
    raw = auth_user.organization_id or organization_header
    if not raw:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="organization scope missing")
    try:
        organization_id = uuid.UUID(raw)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="organization scope invalid")

    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    return OrgContext(organization_id=organization_id, user_id=auth_user.sub, correlation_id=correlation_id)


def get_unit_of_work(db: Session = Depends(get_db)) -> UnitOfWork:
    settings = get_settings()
    return UnitOfWork(db, EventBusTransitionSink(), timeout_seconds=settings.unit_of_work_timeout_seconds)
