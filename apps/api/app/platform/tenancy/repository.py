from __future__ import annotations

import uuid
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from app.platform.errors import NotFoundError
from app.platform.tenancy.context import OrgContext


M = TypeVar("M")


class TenantRepository(Generic[M]):
    """Organization-scoped access to one model.

    Subclasses set `model` and `label`; the model must expose `id` and `organization_id`.
    """

    model: type[M]
    label = "Record"

    def scoped(self, ctx: OrgContext, query: Select[Any] | None = None) -> Select[Any]:
        stmt = query if query is not None else select(self.model)
        return stmt.where(self.model.organization_id == ctx.organization_id)  # type: ignore[attr-defined]

    def find(self, session: Session, ctx: OrgContext, record_id: uuid.UUID, *options: Any) -> M | None:
        stmt = self.scoped(ctx).where(self.model.id == record_id)  # type: ignore[attr-defined]
        if options:
            stmt = stmt.options(*options)
        return session.scalar(stmt)

    def get(self, session: Session, ctx: OrgContext, record_id: uuid.UUID, *options: Any) -> M:
        record = self.find(session, ctx, record_id, *options)
        if record is None:
            raise NotFoundError(f"{self.label} not found")
        return record

    def list(self, session: Session, ctx: OrgContext, query: Select[Any] | None = None) -> list[M]:
        return list(session.scalars(self.scoped(ctx, query)).all())

    def add(self, session: Session, ctx: OrgContext, record: M) -> M:
        record.organization_id = ctx.organization_id  # type: ignore[attr-defined]
        session.add(record)
        return record
