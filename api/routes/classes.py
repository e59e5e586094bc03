"""Classes API.

School admins manage every class of their school. Teachers may edit only the
classes they lead, and cannot hand a class to someone else.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from api.deps import RequireCapability, RequireRoles, get_db_session, get_tenant_filter
from api.schemas import ClassCreate, ClassDetail, ClassOut, ClassPage, ClassUpdate
from core.errors import RoleNotAllowed
from core.guards import require_owner_or_capability
from core.models import SchoolClass, User
from core.rbac import Capability, Role, has_capability
from core.repository import TenantScopedRepository, record_audit
from core.schemas import Identity, TenantFilter

router = APIRouter(prefix="/api/classes", tags=["classes"])

CLASS_READERS = RequireRoles(Role.GLOBAL_ADMIN, Role.TENANT_ADMIN, Role.STAFF)
CLASS_MANAGERS = RequireCapability(Capability.MANAGE_CLASSES)
CLASS_EDITORS = RequireRoles(Role.TENANT_ADMIN, Role.STAFF)
NULLABLE_FIELDS = frozenset({"teacher_id", "description"})


def _client_ip(request: Request):
    return request.client.host if request.client else None


def _check_teacher(session: Session, tenant_id: str, teacher_id: str) -> None:
    teacher = session.get(User, teacher_id)
    if (
        teacher is None
        or teacher.tenant_id != tenant_id
        or teacher.role != Role.STAFF.value
        or not teacher.active
    ):
        raise HTTPException(status_code=400, detail="Teacher not found")


def _check_unique(
    repo: TenantScopedRepository, tenant_id: str, grade: str, section: str,
    exclude_id: Optional[str] = None,
) -> None:
    stmt = repo.query().where(
        SchoolClass.tenant_id == tenant_id,
        SchoolClass.grade == grade,
        SchoolClass.section == section,
    )
    if exclude_id is not None:
        stmt = stmt.where(SchoolClass.id != exclude_id)
    if repo.session.scalars(stmt).first() is not None:
        raise HTTPException(
            status_code=400, detail="A class with this grade and section already exists"
        )


@router.get("", response_model=ClassPage)
def list_classes(
    grade: Optional[str] = None,
    teacher_id: Optional[str] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    _: Identity = Depends(CLASS_READERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    criteria = {}
    if grade:
        criteria["grade"] = grade
    if teacher_id:
        criteria["teacher_id"] = teacher_id
    repo = TenantScopedRepository(session, SchoolClass, tenant_filter)
    return ClassPage(
        items=repo.list(offset=offset, limit=limit, **criteria),
        total=repo.count(**criteria),
    )


@router.get("/{class_id}", response_model=ClassDetail)
def get_class(
    class_id: str,
    _: Identity = Depends(CLASS_READERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    school_class = TenantScopedRepository(session, SchoolClass, tenant_filter).get(class_id)
    if school_class is None:
        raise HTTPException(status_code=404, detail="Class not found")
    return ClassDetail.model_validate(school_class)


@router.post("", response_model=ClassOut, status_code=201)
def create_class(
    request: Request,
    body: ClassCreate,
    identity: Identity = Depends(CLASS_MANAGERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    repo = TenantScopedRepository(session, SchoolClass, tenant_filter)
    tenant_id = identity.tenant_id
    _check_unique(repo, tenant_id, body.grade, body.section)
    if body.teacher_id:
        _check_teacher(session, tenant_id, body.teacher_id)

    school_class = repo.add(SchoolClass(**body.model_dump(), tenant_id=tenant_id))
    record_audit(
        session,
        identity,
        "class.create",
        "class",
        resource_id=school_class.id,
        tenant_id=tenant_id,
        ip_address=_client_ip(request),
    )
    return school_class


@router.patch("/{class_id}", response_model=ClassOut)
def update_class(
    request: Request,
    class_id: str,
    body: ClassUpdate,
    identity: Identity = Depends(CLASS_EDITORS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    repo = TenantScopedRepository(session, SchoolClass, tenant_filter)
    school_class = repo.get(class_id)
    if school_class is None:
        raise HTTPException(status_code=404, detail="Class not found")
    require_owner_or_capability(
        identity,
        school_class.teacher_id,
        Capability.MANAGE_CLASSES,
        Capability.MANAGE_OWN_CLASSES,
    )

    values = {
        key: value
        for key, value in body.model_dump(exclude_unset=True).items()
        if value is not None or key in NULLABLE_FIELDS
    }
    if "teacher_id" in values:
        if not has_capability(identity.role, Capability.MANAGE_CLASSES):
            if values["teacher_id"] != school_class.teacher_id:
                raise RoleNotAllowed(f"User {identity.user_id} may not reassign class {class_id}")
        elif values["teacher_id"]:
            _check_teacher(session, school_class.tenant_id, values["teacher_id"])
    if "grade" in values or "section" in values:
        _check_unique(
            repo,
            school_class.tenant_id,
            values.get("grade", school_class.grade),
            values.get("section", school_class.section),
            exclude_id=class_id,
        )

    school_class = repo.update(class_id, values)
    record_audit(
        session,
        identity,
        "class.update",
        "class",
        resource_id=class_id,
        tenant_id=school_class.tenant_id,
        ip_address=_client_ip(request),
        details=",".join(sorted(values)),
    )
    return school_class


@router.delete("/{class_id}", status_code=204)
def delete_class(
    request: Request,
    class_id: str,
    identity: Identity = Depends(CLASS_MANAGERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    if not TenantScopedRepository(session, SchoolClass, tenant_filter).delete(class_id):
        raise HTTPException(status_code=404, detail="Class not found")
    record_audit(
        session,
        identity,
        "class.delete",
        "class",
        resource_id=class_id,
        ip_address=_client_ip(request),
    )
    return Response(status_code=204)
