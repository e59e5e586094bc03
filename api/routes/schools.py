"""School (tenant) administration. Listing and lifecycle are global-admin only."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from api.deps import RequireCapability, RequireRoles, get_db_session, get_identity
from api.schemas import SchoolCreate, SchoolOut
from core.models import School
from core.rbac import Capability, Role
from core.repository import record_audit
from core.schemas import Identity
from core.scope import ensure_tenant_access

router = APIRouter(prefix="/api/schools", tags=["schools"])


@router.get("", response_model=List[SchoolOut])
def list_schools(
    _: Identity = Depends(RequireRoles(Role.GLOBAL_ADMIN)),
    session: Session = Depends(get_db_session),
):
    return list(session.scalars(select(School).order_by(School.created_at.desc())))


@router.post("", response_model=SchoolOut, status_code=201)
def create_school(
    request: Request,
    body: SchoolCreate,
    identity: Identity = Depends(RequireCapability(Capability.CREATE_TENANT)),
    session: Session = Depends(get_db_session),
):
    school = School(**body.model_dump())
    session.add(school)
    session.flush()
    record_audit(
        session,
        identity,
        "school.create",
        "school",
        resource_id=school.id,
        tenant_id=school.id,
        ip_address=request.client.host if request.client else None,
    )
    return school


@router.get("/{school_id}", response_model=SchoolOut)
def get_school(
    school_id: str,
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db_session),
):
    ensure_tenant_access(identity, school_id)
    school = session.get(School, school_id)
    if school is None:
        raise HTTPException(status_code=404, detail="School not found")
    return school


@router.delete("/{school_id}", status_code=204)
def delete_school(
    request: Request,
    school_id: str,
    identity: Identity = Depends(RequireCapability(Capability.DELETE_TENANT)),
    session: Session = Depends(get_db_session),
):
    school = session.get(School, school_id)
    if school is None:
        raise HTTPException(status_code=404, detail="School not found")
    session.delete(school)
    record_audit(
        session,
        identity,
        "school.delete",
        "school",
        resource_id=school_id,
        tenant_id=school_id,
        ip_address=request.client.host if request.client else None,
    )
    return Response(status_code=204)
