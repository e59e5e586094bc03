"""Database models for schools, their members, and the audit trail.

This module provides SQLAlchemy models for:
- Schools (the tenants)
- Users and the role/school their tokens are issued with
- Classes, students and guardians, always owned by exactly one school
- Audit logs
"""
import os
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    text,
)
from sqlalchemy.orm import DeclarativeBase, relationship, sessionmaker
from sqlalchemy.pool import StaticPool


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class School(Base):
    """A tenant. Every non-global record belongs to exactly one school."""

    __tablename__ = "schools"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    address = Column(String(512), nullable=False)
    phone = Column(String(64), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    users = relationship("User", back_populates="school", cascade="all, delete-orphan")
    students = relationship(
        "Student", back_populates="school", cascade="all, delete-orphan"
    )
    classes = relationship(
        "SchoolClass", back_populates="school", cascade="all, delete-orphan"
    )
    guardians = relationship(
        "Guardian", back_populates="school", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<School {self.name} ({self.id})>"


class User(Base):
    """A login. ``role`` holds a ``core.rbac.Role`` value."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(String(32), nullable=False)
    tenant_id = Column(String(36), ForeignKey("schools.id"), nullable=True, index=True)
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    school = relationship("School", back_populates="users")

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"


class SchoolClass(Base):
    """A class (grade + section) of one school, optionally led by a teacher."""

    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("tenant_id", "grade", "section", name="uq_classes_grade_section"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    tenant_id = Column(String(36), ForeignKey("schools.id"), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    grade = Column(String(32), nullable=False)
    section = Column(String(32), nullable=False)
    capacity = Column(Integer, nullable=False)
    # users.id of a STAFF member of the same school
    teacher_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    school = relationship("School", back_populates="classes")
    students = relationship("Student", back_populates="school_class")

    def __repr__(self):
        return f"<SchoolClass {self.grade}{self.section} ({self.tenant_id})>"


guardian_students = Table(
    "guardian_students",
    Base.metadata,
    Column("guardian_id", String(36), ForeignKey("guardians.id"), primary_key=True),
    Column("student_id", String(36), ForeignKey("students.id"), primary_key=True),
)


class Student(Base):
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=_new_id)
    tenant_id = Column(String(36), ForeignKey("schools.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    class_id = Column(String(36), ForeignKey("classes.id"), nullable=True, index=True)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)
    admission_number = Column(String(64), nullable=True)
    grade_level = Column(String(32), nullable=True)
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    school = relationship("School", back_populates="students")
    school_class = relationship("SchoolClass", back_populates="students")
    guardians = relationship(
        "Guardian", secondary=guardian_students, back_populates="students"
    )

    def __repr__(self):
        return f"<Student {self.first_name} {self.last_name} ({self.tenant_id})>"


class Guardian(Base):
    """A parent or guardian of one or more students of the same school."""

    __tablename__ = "guardians"

    id = Column(String(36), primary_key=True, default=_new_id)
    tenant_id = Column(String(36), ForeignKey("schools.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    address = Column(String(512), nullable=True)
    occupation = Column(String(128), nullable=True)
    relation_type = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    school = relationship("School", back_populates="guardians")
    students = relationship(
        "Student", secondary=guardian_students, back_populates="guardians"
    )

    @property
    def student_ids(self) -> List[str]:
        return sorted(s.id for s in self.students)

    def __repr__(self):
        return f"<Guardian {self.first_name} {self.last_name} ({self.tenant_id})>"


class AuditLog(Base):
    """Audit log for mutations made through the API."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(255), nullable=True)
    tenant_id = Column(String(36), nullable=True, index=True)

    # Actor information
    user = Column(String(255), nullable=True)
    role = Column(String(32), nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv6 compatible

    details = Column(Text, nullable=True)
    success = Column(Boolean, default=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action} on {self.resource_type} at {self.created_at}>"


class DatabaseManager:
    """Database connection and session management with proper pooling."""

    def __init__(
        self,
        database_url: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        echo: bool = False,
    ):
        """Initialize database connection.

        Args:
            database_url: SQLAlchemy database URL
            pool_size: Number of connections to maintain in the pool
            max_overflow: Max number of connections above pool_size
            pool_timeout: Seconds to wait before giving up on getting a connection
            pool_recycle: Recycle connections after this many seconds
            echo: Echo SQL statements (for debugging)
        """
        if database_url.startswith("sqlite:"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in database_url or database_url == "sqlite://":
                # one shared connection, otherwise every thread sees an empty db
                kwargs["poolclass"] = StaticPool
            self.engine = create_engine(database_url, echo=echo, **kwargs)
        else:
            self.engine = create_engine(
                database_url,
                echo=echo,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                pool_pre_ping=True,
            )

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
            expire_on_commit=False,
        )

    def create_tables(self):
        Base.metadata.create_all(bind=self.engine)

    def drop_tables(self):
        """Drop all tables (use with caution)."""
        Base.metadata.drop_all(bind=self.engine)

    def get_session(self):
        """Get database session. Caller must close it."""
        return self.SessionLocal()

    @contextmanager
    def get_session_context(self):
        """Session that commits on success and rolls back on error.

        Usage:
            with db_manager.get_session_context() as session:
                session.add(obj)
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self):
        self.engine.dispose()

    def health_check(self) -> bool:
        try:
            with self.get_session_context() as session:
                session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


_db_manager: Optional[DatabaseManager] = None
_db_manager_lock = threading.Lock()


def get_db_manager(
    database_url: Optional[str] = None,
    reset: bool = False,
    **kwargs,
) -> DatabaseManager:
    """Get or create the database manager singleton.

    Args:
        database_url: Database URL; falls back to DATABASE_URL
        reset: Force recreation of the singleton (for testing)
        **kwargs: Additional arguments passed to DatabaseManager
    """
    global _db_manager

    with _db_manager_lock:
        if _db_manager is None or reset:
            if _db_manager is not None and reset:
                try:
                    _db_manager.dispose()
                except Exception as e:
                    logger.warning(f"Error disposing old db_manager: {e}")

            if database_url is None:
                database_url = os.getenv("DATABASE_URL")
                if not database_url:
                    raise ValueError(
                        "DATABASE_URL not configured. "
                        "Set DATABASE_URL environment variable or pass database_url parameter."
                    )

            _db_manager = DatabaseManager(database_url, **kwargs)
            _db_manager.create_tables()

    return _db_manager


def dispose_db_manager():
    """Dispose of the database manager singleton on shutdown."""
    global _db_manager
    if _db_manager is not None:
        try:
            _db_manager.dispose()
        except Exception as e:
            logger.error(f"Error disposing db_manager: {e}")
        finally:
            _db_manager = None
