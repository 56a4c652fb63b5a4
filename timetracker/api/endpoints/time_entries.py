# timetracker/api/endpoints/time_entries.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from timetracker.core import security
from timetracker.core.dependencies import get_storage
from timetracker.core.exceptions import (
    AuthorizationDenied, ConflictException, NotFoundException, ValidationException
)
from timetracker.schemas import time_entry as time_entry_schema
from timetracker.storage.base import Record, Storage

router = APIRouter()

# Only these roles may approve entries or change an approved one.
APPROVER_ROLES = frozenset({security.ADMIN, security.MANAGER})


def is_approved(entry: Record) -> bool:
    return entry.get("status") == "approved" or bool(entry.get("isApproved"))


def load_own_entry(storage: Storage, user: Record, entry_id: str) -> Record:
    entry = storage.get_time_entry(entry_id)
    if entry is None or not (security.sees_everything(user) or entry["userId"] == user["id"]):
        raise NotFoundException("Time entry", entry_id)
    return entry


def check_approval_rights(user: Record, data: Record) -> None:
    if user.get("role") in APPROVER_ROLES:
        return
    if data.get("status") == "approved" or data.get("isApproved"):
        raise AuthorizationDenied("Only admins and managers can approve time entries")


def check_project_rules(storage: Storage, user: Record, project_id: Optional[str], task_id: Optional[str]) -> None:
    """Time can only be logged against visible projects that allow it, with a task where one is required."""
    if project_id:
        project = storage.get_project(project_id)
        if project is None or not security.can_view_project(user, project):
            raise ValidationException.for_field("projectId", "Project not found")
        if not project.get("allowTimeTracking", True):
            raise ValidationException.for_field("projectId", "Time tracking is disabled for this project")
        if project.get("requireTaskSelection") and not task_id:
            raise ValidationException.for_field("taskId", "This project requires a task to be selected")
    if task_id:
        task = storage.get_task(task_id)
        if task is None or (project_id and task["projectId"] != project_id):
            raise ValidationException.for_field("taskId", "Task not found for this project")


@router.get("", response_model=List[time_entry_schema.TimeEntry])
def list_time_entries(
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    user_id: Optional[str] = Query(default=None, alias="userId"),
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    offset: Optional[int] = Query(default=None, ge=0),
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    """ Lists the caller's time entries; admins and managers may filter by any user. """
    if not security.sees_everything(current_user):
        user_id = current_user["id"]
    if project_id == "all":
        project_id = None
    return storage.list_time_entries(user_id=user_id, project_id=project_id, start_date=start_date,
                                     end_date=end_date, limit=limit, offset=offset)


@router.get("/{entry_id}", response_model=time_entry_schema.TimeEntry)
def read_time_entry(
    entry_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    return load_own_entry(storage, current_user, entry_id)


@router.post("", response_model=time_entry_schema.TimeEntry, status_code=status.HTTP_201_CREATED)
def create_time_entry(
    entry_in: time_entry_schema.TimeEntryCreate,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.time_loggers)
):
    """ Logs time for the caller. """
    data = entry_in.to_record()
    check_approval_rights(current_user, data)
    check_project_rules(storage, current_user, entry_in.project_id, entry_in.task_id)
    return storage.create_time_entry({**data, "userId": current_user["id"]})


@router.put("/{entry_id}", response_model=time_entry_schema.TimeEntry)
def update_time_entry(
    entry_id: str,
    updates: time_entry_schema.TimeEntryUpdate,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.time_loggers)
):
    entry = load_own_entry(storage, current_user, entry_id)
    data = updates.to_record(partial=True)
    if is_approved(entry) and current_user.get("role") not in APPROVER_ROLES:
        raise ConflictException("Approved time entries cannot be modified")
    check_approval_rights(current_user, data)
    if "projectId" in data or "taskId" in data:
        check_project_rules(storage, current_user, data.get("projectId", entry.get("projectId")),
                            data.get("taskId", entry.get("taskId")))
    updated = storage.update_time_entry(entry_id, data)
    if updated is None:
        raise NotFoundException("Time entry", entry_id)
    return updated


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_time_entry(
    entry_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.time_loggers)
):
    entry = load_own_entry(storage, current_user, entry_id)
    if is_approved(entry) and current_user.get("role") not in APPROVER_ROLES:
        raise ConflictException("Approved time entries cannot be deleted")
    if not storage.delete_time_entry(entry_id):
        raise NotFoundException("Time entry", entry_id)
    return
