"""Students API. Every statement goes through the caller's tenant filter."""
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from api.deps import RequireCapability, RequireRoles, get_db_session, get_tenant_filter
from api.schemas import (
    ClassCount,
    StudentCreate,
    StudentOut,
    StudentPage,
    StudentStats,
    StudentUpdate,
)
from core.models import School, SchoolClass, Student, utcnow
from core.rbac import Capability, Role
from core.repository import TenantScopedRepository, record_audit
from core.schemas import Identity, TenantFilter
from core.scope import ensure_tenant_access

router = APIRouter(prefix="/api/students", tags=["students"])

# Roles that may read student records of their school.
STUDENT_READERS = RequireRoles(Role.GLOBAL_ADMIN, Role.TENANT_ADMIN, Role.STAFF)
STUDENT_MANAGERS = RequireCapability(Capability.MANAGE_STUDENTS)
NULLABLE_FIELDS = frozenset({"admission_number", "grade_level", "class_id"})
RECENT_ENROLLMENT_DAYS = 30


def _client_ip(request: Request):
    return request.client.host if request.client else None


def _check_class(
    session: Session, tenant_filter: TenantFilter, class_id: str, tenant_id: Optional[str]
) -> None:
    school_class = TenantScopedRepository(session, SchoolClass, tenant_filter).get(class_id)
    if school_class is None or school_class.tenant_id != tenant_id:
        raise HTTPException(status_code=400, detail="Unknown class")


@router.get("", response_model=StudentPage)
def list_students(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    _: Identity = Depends(STUDENT_READERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    repo = TenantScopedRepository(session, Student, tenant_filter)
    return StudentPage(
        items=repo.list(offset=offset, limit=limit),
        total=repo.count(),
    )


@router.get("/stats", response_model=StudentStats)
def student_stats(
    _: Identity = Depends(STUDENT_READERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    repo = TenantScopedRepository(session, Student, tenant_filter)
    total = repo.count()
    active = repo.count(active=True)
    since = utcnow() - timedelta(days=RECENT_ENROLLMENT_DAYS)

    per_class = repo.count_by(Student.class_id)
    classes = TenantScopedRepository(session, SchoolClass, tenant_filter).query()
    classes = classes.where(SchoolClass.id.in_(list(per_class))).order_by(
        SchoolClass.grade, SchoolClass.section
    )
    by_class = [
        ClassCount(
            class_id=c.id,
            name=c.name,
            grade=c.grade,
            section=c.section,
            count=per_class[c.id],
        )
        for c in session.scalars(classes)
    ]

    return StudentStats(
        total=total,
        active=active,
        inactive=total - active,
        without_class=repo.count(class_id=None),
        recent_enrollments=repo.count(Student.created_at >= since),
        by_grade=repo.count_by(Student.grade_level),
        by_class=by_class,
    )


@router.get("/{student_id}", response_model=StudentOut)
def get_student(
    student_id: str,
    _: Identity = Depends(STUDENT_READERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    student = TenantScopedRepository(session, Student, tenant_filter).get(student_id)
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@router.post("", response_model=StudentOut, status_code=201)
def create_student(
    request: Request,
    body: StudentCreate,
    identity: Identity = Depends(STUDENT_MANAGERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    tenant_id = body.tenant_id or identity.tenant_id
    ensure_tenant_access(identity, tenant_id)
    if session.get(School, tenant_id) is None:
        raise HTTPException(status_code=400, detail="Unknown school")
    if body.class_id:
        _check_class(session, tenant_filter, body.class_id, tenant_id)

    student = Student(**body.model_dump(exclude={"tenant_id"}), tenant_id=tenant_id)
    TenantScopedRepository(session, Student, tenant_filter).add(student)
    record_audit(
        session,
        identity,
        "student.create",
        "student",
        resource_id=student.id,
        tenant_id=tenant_id,
        ip_address=_client_ip(request),
    )
    return student


@router.patch("/{student_id}", response_model=StudentOut)
def update_student(
    request: Request,
    student_id: str,
    body: StudentUpdate,
    identity: Identity = Depends(STUDENT_MANAGERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    values = {
        key: value
        for key, value in body.model_dump(exclude_unset=True).items()
        if value is not None or key in NULLABLE_FIELDS
    }
    if "tenant_id" in values:
        # moving a record across schools: check before touching anything
        ensure_tenant_access(identity, values["tenant_id"])

    repo = TenantScopedRepository(session, Student, tenant_filter)
    student = repo.get(student_id)
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found")

    target_tenant = values.get("tenant_id", student.tenant_id)
    if target_tenant != student.tenant_id:
        # the old class belongs to the old school
        values.setdefault("class_id", None)
    if values.get("class_id"):
        _check_class(session, tenant_filter, values["class_id"], target_tenant)

    student = repo.update(student_id, values)
    record_audit(
        session,
        identity,
        "student.update",
        "student",
        resource_id=student_id,
        tenant_id=student.tenant_id,
        ip_address=_client_ip(request),
        details=",".join(sorted(values)),
    )
    return student


@router.delete("/{student_id}", status_code=204)
def delete_student(
    request: Request,
    student_id: str,
    identity: Identity = Depends(STUDENT_MANAGERS),
    tenant_filter: TenantFilter = Depends(get_tenant_filter),
    session: Session = Depends(get_db_session),
):
    if not TenantScopedRepository(session, Student, tenant_filter).delete(student_id):
        raise HTTPException(status_code=404, detail="Student not found")
    record_audit(
        session,
        identity,
        "student.delete",
        "student",
        resource_id=student_id,
        ip_address=_client_ip(request),
    )
    return Response(status_code=204)
