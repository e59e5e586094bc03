"""Data access with the caller's tenant filter applied to every statement."""
from __future__ import annotations

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.errors import CrossTenantAccess
from core.models import AuditLog, utcnow
from core.schemas import Identity, TenantFilter

ModelT = TypeVar("ModelT")


class TenantScopedRepository(Generic[ModelT]):
    """CRUD over one tenant-owned model.

    Reading another tenant's row by id raises CrossTenantAccess (403) rather
    than pretending it does not exist; listings simply never include it.
    """

    def __init__(self, session: Session, model: Type[ModelT], tenant_filter: TenantFilter):
        if not hasattr(model, "tenant_id"):
            raise TypeError(f"{model.__name__} has no tenant_id column")
        self.session = session
        self.model = model
        self.tenant_filter = tenant_filter

    def query(self):
        return select(self.model).filter_by(**self.tenant_filter.as_criteria())

    def list(self, offset: int = 0, limit: Optional[int] = None, **criteria: Any) -> List[ModelT]:
        stmt = self.query().filter_by(**criteria).order_by(self.model.created_at.desc())
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt))

    def count(self, *clauses: Any, **criteria: Any) -> int:
        stmt = (
            select(func.count())
            .select_from(self.model)
            .filter_by(**self.tenant_filter.as_criteria())
            .filter_by(**criteria)
        )
        if clauses:
            stmt = stmt.where(*clauses)
        return self.session.scalar(stmt) or 0

    def count_by(self, column: Any, **criteria: Any) -> Dict[Any, int]:
        """Row counts grouped by ``column``; rows where it is NULL are left out."""
        stmt = (
            select(column, func.count())
            .select_from(self.model)
            .filter_by(**self.tenant_filter.as_criteria())
            .filter_by(**criteria)
            .where(column.is_not(None))
            .group_by(column)
        )
        return {value: total for value, total in self.session.execute(stmt)}

    def get(self, obj_id: Any) -> Optional[ModelT]:
        obj = self.session.scalars(self.query().where(self.model.id == obj_id)).first()
        if obj is None and self._exists_outside_scope(obj_id):
            raise CrossTenantAccess(
                f"{self.model.__name__} {obj_id} belongs to another school"
            )
        return obj

    def add(self, obj: ModelT) -> ModelT:
        if obj.tenant_id is None and not self.tenant_filter.unrestricted:
            obj.tenant_id = self.tenant_filter.tenant_id
        self._check_target(obj.tenant_id)
        self.session.add(obj)
        self.session.flush()
        return obj

    def update(self, obj_id: Any, values: Dict[str, Any]) -> Optional[ModelT]:
        obj = self.get(obj_id)
        if obj is None:
            return None
        if "tenant_id" in values:
            self._check_target(values["tenant_id"])
        for key, value in values.items():
            setattr(obj, key, value)
        if hasattr(obj, "updated_at"):
            obj.updated_at = utcnow()
        self.session.flush()
        return obj

    def delete(self, obj_id: Any) -> bool:
        obj = self.get(obj_id)
        if obj is None:
            return False
        self.session.delete(obj)
        self.session.flush()
        return True

    def _check_target(self, tenant_id: Optional[str]) -> None:
        if tenant_id is None or not self.tenant_filter.allows(tenant_id):
            raise CrossTenantAccess(
                f"Write to school {tenant_id} outside the caller's scope"
            )

    def _exists_outside_scope(self, obj_id: Any) -> bool:
        if self.tenant_filter.unrestricted:
            return False
        stmt = select(self.model.id).where(self.model.id == obj_id)
        return self.session.scalar(stmt) is not None


def record_audit(
    session: Session,
    identity: Identity,
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    details: Optional[str] = None,
    success: bool = True,
    error_message: Optional[str] = None,
) -> AuditLog:
    entry = AuditLog(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        tenant_id=tenant_id if tenant_id is not None else identity.tenant_id,
        user=identity.user_id,
        role=identity.role.value,
        ip_address=ip_address,
        details=details,
        success=success,
        error_message=error_message,
    )
    session.add(entry)
    logger.info(
        f"audit action={action} resource={resource_type}:{resource_id} "
        f"user={identity.user_id} success={success}"
    )
    return entry
