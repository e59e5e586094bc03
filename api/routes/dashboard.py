"""Role dashboards (page context: denials redirect instead of returning JSON)."""
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from api.deps import RequireRoles, get_db_session, get_identity, get_tenant_filter
from api.templating import templates
from core.models import School, Student, User
from core.rbac import Role, capabilities_for
from core.repository import TenantScopedRepository
from core.schemas import Identity, TenantFilter

router = APIRouter(prefix="/dashboard")

ROLE_DASHBOARDS = {
    Role.GLOBAL_ADMIN: "/dashboard/super-admin",
    Role.TENANT_ADMIN: "/dashboard/school-admin",
    Role.STAFF: "/dashboard/teacher",
    Role.GUARDIAN: "/dashboard/parent",
    Role.MEMBER: "/dashboard/student",
}


def _render(request: Request, identity: Identity, title: str, stats: Optional[Dict[str, int]] = None):
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "title": title,
            "identity": identity,
            "stats": stats or {},
            "capabilities": sorted(c.value for c in capabilities_for(identity.role)),
        },
    )


@router.get("")
def dashboard(identity: Identity = Depends(get_identity)):
    return RedirectResponse(ROLE_DASHBOARDS[identity.role], status_code=303)


@router.get("/super-admin", response_class=HTMLResponse)
def super_admin_dashboard(
    request: Request,
    identity: Identity = Depends(RequireRoles(Role.GLOBAL_ADMIN)),
    session: Session = Depends(get_db_session),
):
    stats = {
        "Schools": session.scalar(select(func.count()).select_from(School)) or 0,
        "Users": session.scalar(select(func.count()).select_from(User)) or 0,
        "Students": session.scalar(select(func.count()).select_from(Student)) or 0,
    }
    return _render(request, identity, "Platform overview", stats)


@router.get("/school-admin", response_class=HTMLResponse)
def school_admin_dashboard(
    request: Request,
    identity: Identity = Depends(RequireRoles(Role.TENANT_ADMIN)),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    students = TenantScopedRepository(session, Student, tenant_filter)
    stats = {
        "Students": students.count(),
        "Active students": students.count(active=True),
    }
    return _render(request, identity, "School overview", stats)


@router.get("/teacher", response_class=HTMLResponse)
def teacher_dashboard(request: Request, identity: Identity = Depends(RequireRoles(Role.STAFF))):
    return _render(request, identity, "Teacher dashboard")


@router.get("/parent", response_class=HTMLResponse)
def parent_dashboard(request: Request, identity: Identity = Depends(RequireRoles(Role.GUARDIAN))):
    return _render(request, identity, "Parent dashboard")


@router.get("/student", response_class=HTMLResponse)
def student_dashboard(request: Request, identity: Identity = Depends(RequireRoles(Role.MEMBER))):
    return _render(request, identity, "Student dashboard")
