"""Guardians (parents) of a school's students."""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from api.deps import RequireCapability, RequireRoles, get_db_session, get_tenant_filter
from api.schemas import GuardianCreate, GuardianOut, GuardianPage
from core.models import Guardian, Student
from core.rbac import Capability, Role
from core.repository import TenantScopedRepository, record_audit
from core.schemas import Identity, TenantFilter

router = APIRouter(prefix="/api/guardians", tags=["guardians"])

GUARDIAN_READERS = RequireRoles(Role.GLOBAL_ADMIN, Role.TENANT_ADMIN, Role.STAFF)
GUARDIAN_MANAGERS = RequireCapability(Capability.MANAGE_GUARDIANS)


@router.get("", response_model=GuardianPage)
def list_guardians(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    _: Identity = Depends(GUARDIAN_READERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    repo = TenantScopedRepository(session, Guardian, tenant_filter)
    return GuardianPage(
        items=[GuardianOut.model_validate(g) for g in repo.list(offset=offset, limit=limit)],
        total=repo.count(),
    )


@router.get("/{guardian_id}", response_model=GuardianOut)
def get_guardian(
    guardian_id: str,
    _: Identity = Depends(GUARDIAN_READERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    guardian = TenantScopedRepository(session, Guardian, tenant_filter).get(guardian_id)
    if guardian is None:
        raise HTTPException(status_code=404, detail="Guardian not found")
    return GuardianOut.model_validate(guardian)


@router.post("", response_model=GuardianOut, status_code=201)
def create_guardian(
    request: Request,
    body: GuardianCreate,
    identity: Identity = Depends(GUARDIAN_MANAGERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    repo = TenantScopedRepository(session, Guardian, tenant_filter)
    if body.email and repo.count(email=body.email):
        raise HTTPException(status_code=400, detail="A guardian with this email already exists")

    # another school's student raises CrossTenantAccess here
    students_repo = TenantScopedRepository(session, Student, tenant_filter)
    students = []
    for student_id in body.student_ids:
        student = students_repo.get(student_id)
        if student is None:
            raise HTTPException(status_code=400, detail=f"Unknown student {student_id}")
        students.append(student)

    guardian = Guardian(**body.model_dump(exclude={"student_ids"}), students=students)
    repo.add(guardian)
    record_audit(
        session,
        identity,
        "guardian.create",
        "guardian",
        resource_id=guardian.id,
        tenant_id=guardian.tenant_id,
        ip_address=request.client.host if request.client else None,
        details=",".join(body.student_ids) or None,
    )
    return GuardianOut.model_validate(guardian)
