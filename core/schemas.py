from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.rbac import Role


class Claims(BaseModel):
    """Verified token claims. ``role`` stays a raw string until resolved."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    subject: str = Field(..., min_length=1)
    role: str
    tenant_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    issued_at: Optional[int] = None
    expires_at: Optional[int] = None


class Identity(BaseModel):
    """The caller, resolved once per request and never persisted."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Role
    tenant_id: Optional[str] = None

    @property
    def is_global(self) -> bool:
        return self.role is Role.GLOBAL_ADMIN


class TenantFilter(BaseModel):
    """Predicate every data query must be intersected with.

    ``tenant_id=None`` means unrestricted and is only ever produced for
    GLOBAL_ADMIN by ``core.scope.scope_filter``.
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: Optional[str] = None

    @property
    def unrestricted(self) -> bool:
        return self.tenant_id is None

    def as_criteria(self) -> Dict[str, Any]:
        if self.tenant_id is None:
            return {}
        return {"tenant_id": self.tenant_id}

    def allows(self, tenant_id: Optional[str]) -> bool:
        return self.tenant_id is None or self.tenant_id == tenant_id
