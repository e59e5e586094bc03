import pytest
from sqlalchemy import select

from core.errors import CrossTenantAccess
from core.models import AuditLog, School, SchoolClass, Student
from core.rbac import Role
from core.repository import TenantScopedRepository, record_audit
from core.schemas import Identity, TenantFilter
from core.scope import scope_filter

ADMIN_1 = Identity(user_id="u-admin1", role=Role.TENANT_ADMIN, tenant_id="school-1")
STAFF_2 = Identity(user_id="u-staff2", role=Role.STAFF, tenant_id="school-2")
ROOT = Identity(user_id="root", role=Role.GLOBAL_ADMIN)


@pytest.fixture
def session(seeded):
    s = seeded.get_session()
    yield s
    s.rollback()
    s.close()


def _repo(session, identity):
    return TenantScopedRepository(session, Student, scope_filter(identity))


@pytest.mark.parametrize("identity", [ADMIN_1, STAFF_2])
def test_listing_never_returns_other_schools(session, identity):
    students = _repo(session, identity).list()
    assert students
    assert {s.tenant_id for s in students} == {identity.tenant_id}


def test_global_admin_sees_every_school(session):
    students = _repo(session, ROOT).list()
    assert {s.tenant_id for s in students} == {"school-1", "school-2"}
    assert _repo(session, ROOT).count() == 3


def test_count_and_criteria_stay_scoped(session):
    repo = _repo(session, ADMIN_1)
    assert repo.count() == 2
    assert [s.id for s in repo.list(first_name="Chi")] == []
    assert [s.id for s in repo.list(first_name="Ada")] == ["stu-1a"]


def test_pagination(session):
    repo = _repo(session, ADMIN_1)
    assert len(repo.list(limit=1)) == 1
    assert len(repo.list(offset=1, limit=10)) == 1


def test_get_own_record(session):
    assert _repo(session, ADMIN_1).get("stu-1a").first_name == "Ada"
    assert _repo(session, ADMIN_1).get("missing") is None


def test_get_other_schools_record_is_forbidden(session):
    with pytest.raises(CrossTenantAccess):
        _repo(session, ADMIN_1).get("stu-2a")


def test_add_defaults_to_callers_school(session):
    student = _repo(session, ADMIN_1).add(Student(first_name="Dee", last_name="Zulu"))
    assert student.tenant_id == "school-1"
    assert student.id


def test_add_into_another_school_is_rejected(session):
    with pytest.raises(CrossTenantAccess):
        _repo(session, ADMIN_1).add(
            Student(first_name="Dee", last_name="Zulu", tenant_id="school-2")
        )
    assert session.scalars(select(Student).where(Student.first_name == "Dee")).first() is None


def test_unrestricted_add_needs_explicit_school(session):
    with pytest.raises(CrossTenantAccess):
        _repo(session, ROOT).add(Student(first_name="Dee", last_name="Zulu"))
    student = _repo(session, ROOT).add(
        Student(first_name="Dee", last_name="Zulu", tenant_id="school-2")
    )
    assert student.tenant_id == "school-2"


def test_update_other_schools_record_leaves_it_untouched(session):
    with pytest.raises(CrossTenantAccess):
        _repo(session, ADMIN_1).update("stu-2a", {"first_name": "Hacked"})
    assert session.get(Student, "stu-2a").first_name == "Chi"


def test_update_cannot_move_record_out_of_scope(session):
    with pytest.raises(CrossTenantAccess):
        _repo(session, ADMIN_1).update("stu-1a", {"tenant_id": "school-2", "first_name": "X"})
    student = session.get(Student, "stu-1a")
    assert student.tenant_id == "school-1"
    assert student.first_name == "Ada"


def test_update_sets_timestamp(session):
    student = _repo(session, ADMIN_1).update("stu-1a", {"grade_level": "5"})
    assert student.grade_level == "5"
    assert student.updated_at is not None


def test_delete(session):
    assert _repo(session, ADMIN_1).delete("stu-1b") is True
    assert _repo(session, ADMIN_1).delete("stu-1b") is False
    with pytest.raises(CrossTenantAccess):
        _repo(session, ADMIN_1).delete("stu-2a")
    assert session.get(Student, "stu-2a") is not None


def test_model_without_tenant_column_is_refused(session):
    with pytest.raises(TypeError):
        TenantScopedRepository(session, School, TenantFilter(tenant_id="school-1"))


def test_record_audit(session):
    entry = record_audit(session, ADMIN_1, "student.update", "student", resource_id="stu-1a")
    session.flush()
    stored = session.get(AuditLog, entry.id)
    assert stored.tenant_id == "school-1"
    assert stored.user == "u-admin1"
    assert stored.role == "TENANT_ADMIN"


def test_count_by_stays_scoped(session):
    assert _repo(session, ADMIN_1).count_by(Student.class_id) == {"class-1a": 1}
    assert _repo(session, ROOT).count_by(Student.grade_level) == {"4": 2}


def test_count_accepts_expressions(session):
    repo = _repo(session, ADMIN_1)
    assert repo.count(Student.first_name.startswith("A")) == 1
    assert repo.count(Student.first_name.startswith("C")) == 0
    assert repo.count(class_id=None) == 1


def test_classes_are_scoped_too(session):
    repo = TenantScopedRepository(session, SchoolClass, scope_filter(STAFF_2))
    assert [c.id for c in repo.list()] == ["class-2a"]
    with pytest.raises(CrossTenantAccess):
        repo.get("class-1a")
