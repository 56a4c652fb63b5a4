# timetracker/storage/relational.py
"""
SQLAlchemy-backed storage.

This module owns the translation between wire field names (camelCase) and
column names (snake_case). Nothing outside it needs to know the two differ.
"""

import logging
from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from sqlalchemy import case, distinct, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from timetracker.core.exceptions import (
    ApplicationException, ConflictException, NotFoundException, StorageUnavailable, ValidationException
)
from timetracker.db import models
from timetracker.db.session import create_session_factory, diagnose_connection_error, get_database_health
from timetracker.storage.base import Record, Storage

logger = logging.getLogger(__name__)

T = TypeVar("T")

_COMMON = {"id": "id", "createdAt": "created_at", "updatedAt": "updated_at"}

WIRE_TO_COLUMN: Dict[type, Dict[str, str]] = {
    models.User: {
        **_COMMON,
        "email": "email",
        "firstName": "first_name",
        "lastName": "last_name",
        "profileImageUrl": "profile_image_url",
        "role": "role",
        "organizationId": "organization_id",
        "department": "department",
        "isActive": "is_active",
        "lastLoginAt": "last_login_at",
    },
    models.Organization: {
        **_COMMON,
        "name": "name",
        "description": "description",
        "userId": "user_id",
    },
    models.Department: {
        **_COMMON,
        "name": "name",
        "organizationId": "organization_id",
        "managerId": "manager_id",
        "description": "description",
        "userId": "user_id",
    },
    models.Employee: {
        **_COMMON,
        "employeeId": "employee_id",
        "firstName": "first_name",
        "lastName": "last_name",
        "department": "department",
        "userId": "user_id",
    },
    models.Project: {
        **_COMMON,
        "name": "name",
        "description": "description",
        "status": "status",
        "organizationId": "organization_id",
        "departmentId": "department_id",
        "managerId": "manager_id",
        "userId": "user_id",
        "startDate": "start_date",
        "endDate": "end_date",
        "budget": "budget",
        "projectNumber": "project_number",
        "isEnterpriseWide": "is_enterprise_wide",
        "isTemplate": "is_template",
        "allowTimeTracking": "allow_time_tracking",
        "requireTaskSelection": "require_task_selection",
        "enableBudgetTracking": "enable_budget_tracking",
        "enableBilling": "enable_billing",
    },
    models.Task: {
        **_COMMON,
        "projectId": "project_id",
        "title": "title",
        "name": "name",
        "description": "description",
        "status": "status",
        "priority": "priority",
        "assignedTo": "assigned_to",
        "createdBy": "created_by",
        "dueDate": "due_date",
        "estimatedHours": "estimated_hours",
        "actualHours": "actual_hours",
    },
    models.ProjectEmployee: {
        "id": "id",
        "createdAt": "created_at",
        "projectId": "project_id",
        "employeeId": "employee_id",
        "userId": "user_id",
    },
    models.TimeEntry: {
        **_COMMON,
        "userId": "user_id",
        "projectId": "project_id",
        "taskId": "task_id",
        "description": "description",
        "hours": "hours",
        "duration": "duration",
        "date": "date",
        "startTime": "start_time",
        "endTime": "end_time",
        "status": "status",
        "billable": "billable",
        "isBillable": "is_billable",
        "isApproved": "is_approved",
        "isManualEntry": "is_manual_entry",
        "isTimerEntry": "is_timer_entry",
        "isTemplate": "is_template",
    },
}

COLUMN_TO_WIRE: Dict[type, Dict[str, str]] = {
    model: {column: wire for wire, column in mapping.items()} for model, mapping in WIRE_TO_COLUMN.items()
}

# Maintained by the storage layer; callers never set these.
READ_ONLY = {"id", "createdAt", "updatedAt"}


def to_wire(model: type, obj: Any) -> Optional[Record]:
    if obj is None:
        return None
    return {wire: getattr(obj, column) for column, wire in COLUMN_TO_WIRE[model].items()}


def to_columns(model: type, data: Record) -> Dict[str, Any]:
    mapping = WIRE_TO_COLUMN[model]
    return {mapping[key]: value for key, value in data.items() if key in mapping and key not in READ_ONLY}


def check_ranges(obj: Any) -> None:
    """Date and time ranges are validated on the merged row, so a partial update cannot break them."""
    if isinstance(obj, models.Project):
        if obj.start_date and obj.end_date and obj.end_date < obj.start_date:
            raise ValidationException.for_field("endDate", "End date must be on or after start date")
    elif isinstance(obj, models.TimeEntry):
        if obj.start_time and obj.end_time and obj.end_time < obj.start_time:
            raise ValidationException.for_field("endTime", "End time must be on or after start time")
        if obj.hours is not None and not 0 <= obj.hours <= 24:
            raise ValidationException.for_field("hours", "Hours must be between 0 and 24")


class RelationalStorage(Storage):
    kind = "relational"

    def __init__(self, engine: Engine, session_factory: Optional[sessionmaker] = None, retries: int = 2):
        self.engine = engine
        self._session_factory = session_factory or create_session_factory(engine)
        self._retries = retries

    # --- plumbing ---
    def _run(self, operation: Callable[[Session], T]) -> T:
        """
        Runs ``operation`` in its own transaction.

        A dropped connection is retried ``retries`` times on a fresh session;
        pool exhaustion surfaces immediately as a retryable error.
        """
        for attempt in range(self._retries + 1):
            session = self._session_factory()
            try:
                result = operation(session)
                session.commit()
                return result
            except IntegrityError as e:
                session.rollback()
                logger.info("Integrity violation: %s", e.orig)
                raise ConflictException("The change conflicts with related records",
                                        {"reason": str(e.orig)}) from e
            except PoolTimeoutError as e:
                session.rollback()
                logger.error("Database connection pool exhausted: %s", e)
                raise StorageUnavailable("Database is busy, please retry", retryable=True) from e
            except DBAPIError as e:
                session.rollback()
                if e.connection_invalidated and attempt < self._retries:
                    logger.warning("Database connection lost (attempt %d/%d), retrying",
                                   attempt + 1, self._retries + 1)
                    continue
                reason = diagnose_connection_error(e)
                logger.error("Database error (%s): %s", reason, e.orig)
                raise StorageUnavailable("Database unavailable", retryable=e.connection_invalidated,
                                         details={"reason": reason}) from e
            except ApplicationException:
                session.rollback()
                raise
            finally:
                session.close()
        raise StorageUnavailable("Database unavailable", retryable=True)

    def _list(self, model: type, *criteria, order_by=None) -> List[Record]:
        def op(s: Session):
            stmt = select(model).where(*criteria)
            if order_by is not None:
                stmt = stmt.order_by(order_by)
            return [to_wire(model, obj) for obj in s.scalars(stmt)]
        return self._run(op)

    def _get(self, model: type, obj_id: str) -> Optional[Record]:
        return self._run(lambda s: to_wire(model, s.get(model, obj_id)))

    def _create(self, model: type, data: Record) -> Record:
        def op(s: Session):
            obj = model(**to_columns(model, data))
            check_ranges(obj)
            s.add(obj)
            s.flush()
            s.refresh(obj)
            return to_wire(model, obj)
        return self._run(op)

    def _update(self, model: type, obj_id: str, data: Record) -> Optional[Record]:
        def op(s: Session):
            obj = s.get(model, obj_id)
            if obj is None:
                return None
            for column, value in to_columns(model, data).items():
                setattr(obj, column, value)
            check_ranges(obj)
            s.flush()
            s.refresh(obj)
            return to_wire(model, obj)
        return self._run(op)

    def _delete(self, model: type, obj_id: str) -> bool:
        def op(s: Session):
            obj = s.get(model, obj_id)
            if obj is None:
                return False
            s.delete(obj)
            s.flush()
            return True
        return self._run(op)

    def create_schema(self) -> None:
        models.Base.metadata.create_all(bind=self.engine)

    def close(self) -> None:
        self.engine.dispose()

    # --- Users ---
    def list_users(self):
        return self._list(models.User, order_by=models.User.email)

    def get_user(self, user_id):
        return self._get(models.User, user_id)

    def get_user_by_email(self, email):
        return self._run(lambda s: to_wire(models.User, s.scalars(
            select(models.User).where(func.lower(models.User.email) == email.lower())).first()))

    def create_user(self, data):
        return self._create(models.User, data)

    def upsert_user(self, data):
        def op(s: Session):
            user = s.scalars(select(models.User).where(
                func.lower(models.User.email) == data["email"].lower())).first()
            if user is None:
                user = models.User(**to_columns(models.User, {"role": "employee", **data}))
                s.add(user)
            else:
                updates = {k: v for k, v in data.items() if k != "role" and v is not None}
                for column, value in to_columns(models.User, updates).items():
                    setattr(user, column, value)
            s.flush()
            s.refresh(user)
            return to_wire(models.User, user)
        return self._run(op)

    def update_user(self, user_id, data):
        return self._update(models.User, user_id, data)

    def update_user_role(self, user_id, role):
        return self._update(models.User, user_id, {"role": role})

    def delete_user(self, user_id):
        def op(s: Session):
            user = s.get(models.User, user_id)
            if user is None:
                return False
            owned_projects = s.scalar(select(func.count()).select_from(models.Project).where(
                or_(models.Project.user_id == user_id, models.Project.manager_id == user_id)))
            owned_entries = s.scalar(select(func.count()).select_from(models.TimeEntry).where(
                models.TimeEntry.user_id == user_id))
            if owned_projects or owned_entries:
                raise ConflictException(
                    f"Cannot delete user. They still own {owned_projects} projects and "
                    f"{owned_entries} time entries. Please remove or reassign them first.")
            s.delete(user)
            s.flush()
            return True
        return self._run(op)

    def list_users_without_employee(self):
        linked = select(models.Employee.user_id).where(models.Employee.user_id.is_not(None))
        return self._list(models.User, models.User.id.not_in(linked), order_by=models.User.email)

    # --- Organizations ---
    def list_organizations(self):
        return self._list(models.Organization, order_by=models.Organization.name)

    def get_organization(self, organization_id):
        return self._get(models.Organization, organization_id)

    def create_organization(self, data):
        return self._create(models.Organization, data)

    def update_organization(self, organization_id, data):
        return self._update(models.Organization, organization_id, data)

    def delete_organization(self, organization_id):
        return self._delete(models.Organization, organization_id)

    def list_departments_by_organization(self, organization_id):
        return self._list(models.Department, models.Department.organization_id == organization_id,
                          order_by=models.Department.name)

    # --- Departments ---
    def list_departments(self):
        return self._list(models.Department, order_by=models.Department.name)

    def get_department(self, department_id):
        return self._get(models.Department, department_id)

    def create_department(self, data):
        return self._create(models.Department, data)

    def update_department(self, department_id, data):
        return self._update(models.Department, department_id, data)

    def delete_department(self, department_id):
        return self._delete(models.Department, department_id)

    def assign_department_manager(self, department_id, manager_id):
        def op(s: Session):
            department = s.get(models.Department, department_id)
            if department is None:
                return None
            if manager_id is not None and s.get(models.Employee, manager_id) is None:
                raise NotFoundException("Employee", manager_id)
            department.manager_id = manager_id
            s.flush()
            s.refresh(department)
            return to_wire(models.Department, department)
        return self._run(op)

    # --- Employees ---
    def list_employees(self):
        return self._list(models.Employee, order_by=models.Employee.last_name)

    def get_employee(self, employee_id):
        return self._get(models.Employee, employee_id)

    def create_employee(self, data):
        return self._create(models.Employee, data)

    def update_employee(self, employee_id, data):
        return self._update(models.Employee, employee_id, data)

    def delete_employee(self, employee_id):
        return self._delete(models.Employee, employee_id)

    def link_employee_user(self, employee_id, user_id):
        def op(s: Session):
            employee = s.get(models.Employee, employee_id)
            if employee is None:
                return None
            if s.get(models.User, user_id) is None:
                raise NotFoundException("User", user_id)
            employee.user_id = user_id
            s.flush()
            s.refresh(employee)
            return to_wire(models.Employee, employee)
        return self._run(op)

    # --- Projects ---
    def list_projects(self, visible_to=None):
        criteria = []
        if visible_to is not None:
            criteria.append(or_(
                models.Project.user_id == visible_to,
                models.Project.manager_id == visible_to,
                models.Project.is_enterprise_wide.is_(True),
            ))
        return self._list(models.Project, *criteria, order_by=models.Project.created_at.desc())

    def get_project(self, project_id):
        return self._get(models.Project, project_id)

    def create_project(self, data):
        return self._create(models.Project, data)

    def update_project(self, project_id, data):
        return self._update(models.Project, project_id, data)

    def delete_project(self, project_id):
        return self._delete(models.Project, project_id)

    def list_project_employees(self, project_id):
        def op(s: Session):
            rows = s.execute(
                select(models.Employee, models.ProjectEmployee)
                .join(models.ProjectEmployee, models.ProjectEmployee.employee_id == models.Employee.id)
                .where(models.ProjectEmployee.project_id == project_id)
                .order_by(models.Employee.last_name)
            ).all()
            result = []
            for employee, assignment in rows:
                record = to_wire(models.Employee, employee)
                record["assignmentId"] = assignment.id
                record["assignedAt"] = assignment.created_at
                result.append(record)
            return result
        return self._run(op)

    def assign_project_employees(self, project_id, employee_ids, user_id):
        def op(s: Session):
            if s.get(models.Project, project_id) is None:
                return None
            existing = set(s.scalars(select(models.ProjectEmployee.employee_id).where(
                models.ProjectEmployee.project_id == project_id)))
            created = []
            for employee_id in dict.fromkeys(employee_ids):
                if employee_id in existing:
                    continue
                if s.get(models.Employee, employee_id) is None:
                    raise NotFoundException("Employee", employee_id)
                assignment = models.ProjectEmployee(project_id=project_id, employee_id=employee_id, user_id=user_id)
                s.add(assignment)
                created.append(assignment)
            s.flush()
            return [to_wire(models.ProjectEmployee, a) for a in created]
        return self._run(op)

    def remove_project_employee(self, project_id, employee_id):
        def op(s: Session):
            assignment = s.scalars(select(models.ProjectEmployee).where(
                models.ProjectEmployee.project_id == project_id,
                models.ProjectEmployee.employee_id == employee_id)).first()
            if assignment is None:
                return False
            s.delete(assignment)
            return True
        return self._run(op)

    # --- Tasks ---
    def list_tasks(self, project_id=None):
        criteria = [models.Task.project_id == project_id] if project_id else []
        return self._list(models.Task, *criteria, order_by=models.Task.created_at)

    def get_task(self, task_id):
        return self._get(models.Task, task_id)

    def create_task(self, data):
        return self._create(models.Task, data)

    def update_task(self, task_id, data):
        return self._update(models.Task, task_id, data)

    def delete_task(self, task_id):
        return self._delete(models.Task, task_id)

    def clone_task(self, task_id, target_project_id, user_id):
        def op(s: Session):
            original = s.get(models.Task, task_id)
            if original is None:
                return None
            if s.get(models.Project, target_project_id) is None:
                raise NotFoundException("Project", target_project_id)
            clone = models.Task(
                project_id=target_project_id,
                title=original.title,
                name=original.name,
                description=original.description,
                priority=original.priority,
                estimated_hours=original.estimated_hours,
                status="pending",
                actual_hours=0,
                created_by=user_id,
            )
            s.add(clone)
            s.flush()
            s.refresh(clone)
            return to_wire(models.Task, clone)
        return self._run(op)

    # --- Time entries ---
    @staticmethod
    def _entry_criteria(user_id=None, project_id=None, start_date=None, end_date=None) -> list:
        criteria = []
        if user_id:
            criteria.append(models.TimeEntry.user_id == user_id)
        if project_id:
            criteria.append(models.TimeEntry.project_id == project_id)
        if start_date:
            criteria.append(models.TimeEntry.date >= start_date)
        if end_date:
            criteria.append(models.TimeEntry.date <= end_date)
        return criteria

    def list_time_entries(self, user_id=None, project_id=None, start_date=None, end_date=None,
                          limit=None, offset=None):
        def op(s: Session):
            stmt = (
                select(models.TimeEntry, models.Project.name, models.Task.title)
                .outerjoin(models.Project, models.Project.id == models.TimeEntry.project_id)
                .outerjoin(models.Task, models.Task.id == models.TimeEntry.task_id)
                .where(*self._entry_criteria(user_id, project_id, start_date, end_date))
                .order_by(models.TimeEntry.date.desc(), models.TimeEntry.created_at.desc())
            )
            if offset:
                stmt = stmt.offset(offset)
            if limit:
                stmt = stmt.limit(limit)
            result = []
            for entry, project_name, task_title in s.execute(stmt):
                record = to_wire(models.TimeEntry, entry)
                record["projectName"] = project_name
                record["taskTitle"] = task_title
                result.append(record)
            return result
        return self._run(op)

    def get_time_entry(self, entry_id):
        return self._get(models.TimeEntry, entry_id)

    def create_time_entry(self, data):
        return self._create(models.TimeEntry, data)

    def update_time_entry(self, entry_id, data):
        return self._update(models.TimeEntry, entry_id, data)

    def delete_time_entry(self, entry_id):
        return self._delete(models.TimeEntry, entry_id)

    def list_project_time_entries(self, project_id):
        def op(s: Session):
            rows = s.execute(
                select(models.TimeEntry, models.User)
                .join(models.User, models.User.id == models.TimeEntry.user_id)
                .where(models.TimeEntry.project_id == project_id)
                .order_by(models.TimeEntry.date.desc())
            ).all()
            result = []
            for entry, user in rows:
                record = to_wire(models.TimeEntry, entry)
                record["user"] = {
                    "id": user.id,
                    "email": user.email,
                    "firstName": user.first_name,
                    "lastName": user.last_name,
                }
                result.append(record)
            return result
        return self._run(op)

    # --- Aggregates ---
    def dashboard_stats(self, user_id, start_date=None, end_date=None):
        if start_date is None and end_date is None:
            start_date = date.today() - timedelta(days=30)

        def op(s: Session):
            criteria = self._entry_criteria(user_id, None, start_date, end_date)
            total_hours, billable_hours, entries, active_projects = s.execute(
                select(
                    func.coalesce(func.sum(models.TimeEntry.hours), 0),
                    func.coalesce(func.sum(case((models.TimeEntry.billable.is_(True), models.TimeEntry.hours),
                                                else_=0)), 0),
                    func.count(models.TimeEntry.id),
                    func.count(distinct(models.TimeEntry.project_id)),
                ).where(*criteria)
            ).one()
            total_projects = s.scalar(select(func.count()).select_from(models.Project).where(
                or_(models.Project.user_id == user_id, models.Project.manager_id == user_id)))
            total_employees = s.scalar(select(func.count()).select_from(models.Employee))
            return {
                "totalHours": float(total_hours),
                "billableHours": float(billable_hours),
                "totalEntries": entries,
                "activeProjects": active_projects,
                "totalProjects": total_projects,
                "totalEmployees": total_employees,
            }
        return self._run(op)

    def project_breakdown(self, user_id, start_date=None, end_date=None):
        def op(s: Session):
            total = func.sum(models.TimeEntry.hours).label("hours")
            rows = s.execute(
                select(models.TimeEntry.project_id, models.Project.name, total)
                .outerjoin(models.Project, models.Project.id == models.TimeEntry.project_id)
                .where(*self._entry_criteria(user_id, None, start_date, end_date))
                .group_by(models.TimeEntry.project_id, models.Project.name)
                .order_by(total.desc())
            ).all()
            grand_total = sum(float(row.hours or 0) for row in rows)
            return [
                {
                    "projectId": row.project_id,
                    "projectName": row.name or ("Deleted project" if row.project_id else "No project"),
                    "hours": float(row.hours or 0),
                    "percentage": round(float(row.hours or 0) * 100 / grand_total, 1) if grand_total else 0.0,
                }
                for row in rows
            ]
        return self._run(op)

    def recent_activity(self, user_id, limit=10, start_date=None, end_date=None):
        return self.list_time_entries(user_id=user_id, start_date=start_date, end_date=end_date, limit=limit)

    def department_hours(self, start_date=None, end_date=None):
        def op(s: Session):
            department = func.coalesce(models.User.department, "Unassigned").label("department")
            total = func.sum(models.TimeEntry.hours).label("hours")
            rows = s.execute(
                select(department, total, func.count(distinct(models.TimeEntry.user_id)).label("users"),
                       func.count(models.TimeEntry.id).label("entries"))
                .join(models.User, models.User.id == models.TimeEntry.user_id)
                .where(*self._entry_criteria(None, None, start_date, end_date))
                .group_by(department)
                .order_by(total.desc())
            ).all()
            return [
                {
                    "department": row.department,
                    "totalHours": float(row.hours or 0),
                    "userCount": row.users,
                    "entryCount": row.entries,
                }
                for row in rows
            ]
        return self._run(op)

    # --- Health ---
    def check_health(self):
        return get_database_health(self.engine)
