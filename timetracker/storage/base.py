# timetracker/storage/base.py
"""
Storage contract shared by every backend.

All methods take and return wire-format dictionaries (camelCase keys, the
same shape the HTTP layer sends and receives). Write methods return the
persisted entity with defaults and timestamps filled in; ``update_*``
returns ``None`` when the id does not resolve and ``delete_*`` returns
whether a row existed. Partial updates touch only the keys present in the
payload.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.engine import Engine

Record = Dict[str, Any]


class Storage(ABC):
    kind = "abstract"
    degraded = False
    degraded_reason: Optional[str] = None
    # Database engine backing this storage, shared with the database session store.
    engine: Optional[Engine] = None

    @property
    def writable(self) -> bool:
        return not self.degraded

    # --- Users ---
    @abstractmethod
    def list_users(self) -> List[Record]: ...

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[Record]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[Record]: ...

    @abstractmethod
    def create_user(self, data: Record) -> Record: ...

    @abstractmethod
    def upsert_user(self, data: Record) -> Record:
        """Creates or refreshes a user keyed by email; an existing role is never changed."""

    @abstractmethod
    def update_user(self, user_id: str, data: Record) -> Optional[Record]: ...

    @abstractmethod
    def update_user_role(self, user_id: str, role: str) -> Optional[Record]: ...

    @abstractmethod
    def delete_user(self, user_id: str) -> bool:
        """Cascades to owned organizations, departments and employees; refuses while projects or time entries remain."""

    @abstractmethod
    def list_users_without_employee(self) -> List[Record]: ...

    # --- Organizations ---
    @abstractmethod
    def list_organizations(self) -> List[Record]: ...

    @abstractmethod
    def get_organization(self, organization_id: str) -> Optional[Record]: ...

    @abstractmethod
    def create_organization(self, data: Record) -> Record: ...

    @abstractmethod
    def update_organization(self, organization_id: str, data: Record) -> Optional[Record]: ...

    @abstractmethod
    def delete_organization(self, organization_id: str) -> bool: ...

    @abstractmethod
    def list_departments_by_organization(self, organization_id: str) -> List[Record]: ...

    # --- Departments ---
    @abstractmethod
    def list_departments(self) -> List[Record]: ...

    @abstractmethod
    def get_department(self, department_id: str) -> Optional[Record]: ...

    @abstractmethod
    def create_department(self, data: Record) -> Record: ...

    @abstractmethod
    def update_department(self, department_id: str, data: Record) -> Optional[Record]: ...

    @abstractmethod
    def delete_department(self, department_id: str) -> bool: ...

    @abstractmethod
    def assign_department_manager(self, department_id: str, manager_id: Optional[str]) -> Optional[Record]: ...

    # --- Employees ---
    @abstractmethod
    def list_employees(self) -> List[Record]: ...

    @abstractmethod
    def get_employee(self, employee_id: str) -> Optional[Record]: ...

    @abstractmethod
    def create_employee(self, data: Record) -> Record: ...

    @abstractmethod
    def update_employee(self, employee_id: str, data: Record) -> Optional[Record]: ...

    @abstractmethod
    def delete_employee(self, employee_id: str) -> bool: ...

    @abstractmethod
    def link_employee_user(self, employee_id: str, user_id: str) -> Optional[Record]: ...

    # --- Projects ---
    @abstractmethod
    def list_projects(self, visible_to: Optional[str] = None) -> List[Record]:
        """All projects, or only those owned, managed or enterprise-wide for ``visible_to``."""

    @abstractmethod
    def get_project(self, project_id: str) -> Optional[Record]: ...

    @abstractmethod
    def create_project(self, data: Record) -> Record: ...

    @abstractmethod
    def update_project(self, project_id: str, data: Record) -> Optional[Record]: ...

    @abstractmethod
    def delete_project(self, project_id: str) -> bool:
        """Cascades to tasks and project-employee rows; time entries keep a dangling reference."""

    @abstractmethod
    def list_project_employees(self, project_id: str) -> List[Record]: ...

    @abstractmethod
    def assign_project_employees(self, project_id: str, employee_ids: Iterable[str],
                                 user_id: str) -> Optional[List[Record]]: ...

    @abstractmethod
    def remove_project_employee(self, project_id: str, employee_id: str) -> bool: ...

    # --- Tasks ---
    @abstractmethod
    def list_tasks(self, project_id: Optional[str] = None) -> List[Record]: ...

    @abstractmethod
    def get_task(self, task_id: str) -> Optional[Record]: ...

    @abstractmethod
    def create_task(self, data: Record) -> Record: ...

    @abstractmethod
    def update_task(self, task_id: str, data: Record) -> Optional[Record]: ...

    @abstractmethod
    def delete_task(self, task_id: str) -> bool: ...

    @abstractmethod
    def clone_task(self, task_id: str, target_project_id: str, user_id: str) -> Optional[Record]: ...

    # --- Time entries ---
    @abstractmethod
    def list_time_entries(self, user_id: Optional[str] = None, project_id: Optional[str] = None,
                          start_date: Optional[date] = None, end_date: Optional[date] = None,
                          limit: Optional[int] = None, offset: Optional[int] = None) -> List[Record]: ...

    @abstractmethod
    def get_time_entry(self, entry_id: str) -> Optional[Record]: ...

    @abstractmethod
    def create_time_entry(self, data: Record) -> Record: ...

    @abstractmethod
    def update_time_entry(self, entry_id: str, data: Record) -> Optional[Record]: ...

    @abstractmethod
    def delete_time_entry(self, entry_id: str) -> bool: ...

    @abstractmethod
    def list_project_time_entries(self, project_id: str) -> List[Record]:
        """Time entries for a project, each with the logging user's name attached."""

    # --- Aggregates ---
    @abstractmethod
    def dashboard_stats(self, user_id: str, start_date: Optional[date] = None,
                        end_date: Optional[date] = None) -> Record: ...

    @abstractmethod
    def project_breakdown(self, user_id: str, start_date: Optional[date] = None,
                          end_date: Optional[date] = None) -> List[Record]: ...

    @abstractmethod
    def recent_activity(self, user_id: str, limit: int = 10, start_date: Optional[date] = None,
                        end_date: Optional[date] = None) -> List[Record]: ...

    @abstractmethod
    def department_hours(self, start_date: Optional[date] = None,
                         end_date: Optional[date] = None) -> List[Record]: ...

    # --- Health ---
    @abstractmethod
    def check_health(self) -> Record: ...

    def close(self) -> None:
        pass
