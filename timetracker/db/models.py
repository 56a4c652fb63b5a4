# timetracker/db/models.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

ROLES = ("admin", "manager", "project_manager", "employee", "viewer")
PROJECT_STATUSES = ("active", "inactive", "completed", "archived")
TASK_STATUSES = ("pending", "in_progress", "completed", "cancelled")
TASK_PRIORITIES = ("low", "medium", "high", "urgent")
TIME_ENTRY_STATUSES = ("draft", "submitted", "approved", "rejected")


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def _in(column: str, values) -> str:
    return f"{column} IN (" + ", ".join(f"'{v}'" for v in values) + ")"


class TimestampMixin:
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class User(TimestampMixin, Base):
    __tablename__ = "users"
    id = Column(String(255), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(255))
    last_name = Column(String(255))
    profile_image_url = Column(Text)
    role = Column(String(50), nullable=False, default="employee")
    organization_id = Column(String(255), index=True)
    department = Column(String(255))
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    last_login_at = Column(DateTime)
    __table_args__ = ( CheckConstraint(_in("role", ROLES), name="ck_users_role"), )

    organizations = relationship("Organization", back_populates="owner", cascade="all, delete-orphan")
    departments = relationship("Department", back_populates="owner", cascade="all, delete-orphan")
    employees = relationship("Employee", back_populates="user", cascade="all, delete-orphan")


class Organization(TimestampMixin, Base):
    __tablename__ = "organizations"
    id = Column(String(255), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    owner = relationship("User", back_populates="organizations")
    departments = relationship("Department", back_populates="organization")


class Employee(TimestampMixin, Base):
    __tablename__ = "employees"
    id = Column(String(255), primary_key=True, default=new_id)
    employee_id = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    department = Column(String(255), nullable=False, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), index=True)

    user = relationship("User", back_populates="employees")
    managed_departments = relationship("Department", back_populates="manager")
    assignments = relationship("ProjectEmployee", back_populates="employee", cascade="all, delete-orphan")


class Department(TimestampMixin, Base):
    __tablename__ = "departments"
    id = Column(String(255), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    organization_id = Column(String(255), ForeignKey("organizations.id"), nullable=False, index=True)
    manager_id = Column(String(255), ForeignKey("employees.id", ondelete="SET NULL"))
    description = Column(String(255))
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    owner = relationship("User", back_populates="departments")
    organization = relationship("Organization", back_populates="departments")
    manager = relationship("Employee", back_populates="managed_departments")


class Project(TimestampMixin, Base):
    __tablename__ = "projects"
    id = Column(String(255), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String(50), nullable=False, default="active", index=True)
    organization_id = Column(String(255), ForeignKey("organizations.id"), index=True)
    department_id = Column(String(255), ForeignKey("departments.id"))
    manager_id = Column(String(255), ForeignKey("users.id"))
    user_id = Column(String(255), ForeignKey("users.id"), nullable=False, index=True)
    start_date = Column(Date)
    end_date = Column(Date)
    budget = Column(Numeric(10, 2, asdecimal=False))
    project_number = Column(String(255))
    is_enterprise_wide = Column(Boolean, nullable=False, default=False)
    is_template = Column(Boolean, nullable=False, default=False)
    allow_time_tracking = Column(Boolean, nullable=False, default=True)
    require_task_selection = Column(Boolean, nullable=False, default=False)
    enable_budget_tracking = Column(Boolean, nullable=False, default=False)
    enable_billing = Column(Boolean, nullable=False, default=False)
    __table_args__ = (
        CheckConstraint(_in("status", PROJECT_STATUSES), name="ck_projects_status"),
        CheckConstraint("end_date IS NULL OR start_date IS NULL OR end_date >= start_date", name="ck_projects_dates"),
    )

    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan")
    assignments = relationship("ProjectEmployee", back_populates="project", cascade="all, delete-orphan")


class Task(TimestampMixin, Base):
    __tablename__ = "tasks"
    id = Column(String(255), primary_key=True, default=new_id)
    project_id = Column(String(255), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    name = Column(String(255))
    description = Column(Text)
    status = Column(String(50), nullable=False, default="pending", index=True)
    priority = Column(String(50), nullable=False, default="medium")
    assigned_to = Column(String(255), ForeignKey("users.id"), index=True)
    created_by = Column(String(255), ForeignKey("users.id"))
    due_date = Column(Date)
    estimated_hours = Column(Numeric(5, 2, asdecimal=False))
    actual_hours = Column(Numeric(5, 2, asdecimal=False), default=0)
    __table_args__ = (
        CheckConstraint(_in("status", TASK_STATUSES), name="ck_tasks_status"),
        CheckConstraint(_in("priority", TASK_PRIORITIES), name="ck_tasks_priority"),
        CheckConstraint("estimated_hours IS NULL OR estimated_hours >= 0", name="ck_tasks_estimated"),
        CheckConstraint("actual_hours IS NULL OR actual_hours >= 0", name="ck_tasks_actual"),
    )

    project = relationship("Project", back_populates="tasks")


class ProjectEmployee(Base):
    __tablename__ = "project_employees"
    id = Column(String(255), primary_key=True, default=new_id)
    project_id = Column(String(255), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(String(255), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    __table_args__ = ( UniqueConstraint("project_id", "employee_id", name="uq_project_employee"), )

    project = relationship("Project", back_populates="assignments")
    employee = relationship("Employee", back_populates="assignments")


class TimeEntry(TimestampMixin, Base):
    """
    Logged hours. ``project_id`` and ``task_id`` are indexed but carry no
    foreign key: deleting a project leaves its entries with a dangling
    reference instead of destroying the time record.
    """
    __tablename__ = "time_entries"
    id = Column(String(255), primary_key=True, default=new_id)
    user_id = Column(String(255), ForeignKey("users.id"), nullable=False, index=True)
    project_id = Column(String(255), index=True)
    task_id = Column(String(255), index=True)
    description = Column(Text)
    hours = Column(Numeric(5, 2, asdecimal=False), nullable=False)
    duration = Column(Numeric(5, 2, asdecimal=False), nullable=False)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(DateTime)
    end_time = Column(DateTime)
    status = Column(String(50), nullable=False, default="draft", index=True)
    billable = Column(Boolean, nullable=False, default=False)
    is_billable = Column(Boolean, nullable=False, default=False)
    is_approved = Column(Boolean, nullable=False, default=False)
    is_manual_entry = Column(Boolean, nullable=False, default=True)
    is_timer_entry = Column(Boolean, nullable=False, default=False)
    is_template = Column(Boolean, nullable=False, default=False)
    __table_args__ = (
        CheckConstraint("hours >= 0 AND hours <= 24", name="ck_time_entries_hours"),
        CheckConstraint("duration >= 0", name="ck_time_entries_duration"),
        CheckConstraint(_in("status", TIME_ENTRY_STATUSES), name="ck_time_entries_status"),
        CheckConstraint("end_time IS NULL OR start_time IS NULL OR end_time >= start_time", name="ck_time_entries_times"),
    )


class SessionRecord(Base):
    __tablename__ = "sessions"
    sid = Column(String(255), primary_key=True)
    session = Column(Text, nullable=False)
    expires = Column(DateTime, nullable=False, index=True)
