# timetracker/api/endpoints/tasks.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from timetracker.api.endpoints.projects import load_modifiable_project, load_visible_project
from timetracker.core import security
from timetracker.core.dependencies import get_storage
from timetracker.core.exceptions import NotFoundException
from timetracker.schemas import task as task_schema
from timetracker.storage.base import Record, Storage

router = APIRouter()


def load_visible_task(storage: Storage, user: Record, task_id: str) -> Record:
    task = storage.get_task(task_id)
    if task is None:
        raise NotFoundException("Task", task_id)
    load_visible_project(storage, user, task["projectId"])
    return task


@router.get("", response_model=List[task_schema.Task])
def list_tasks(
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    """ Lists tasks across every project the caller can see. """
    if project_id:
        load_visible_project(storage, current_user, project_id)
        return storage.list_tasks(project_id=project_id)
    visible_to = None if security.sees_everything(current_user) else current_user["id"]
    visible = {p["id"] for p in storage.list_projects(visible_to=visible_to)}
    return [t for t in storage.list_tasks() if t["projectId"] in visible]


@router.get("/{task_id}", response_model=task_schema.Task)
def read_task(
    task_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    return load_visible_task(storage, current_user, task_id)


@router.post("", response_model=task_schema.Task, status_code=status.HTTP_201_CREATED)
def create_task(
    task_in: task_schema.TaskCreate,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.project_editors)
):
    load_modifiable_project(storage, current_user, task_in.project_id)
    return storage.create_task({**task_in.to_record(), "createdBy": current_user["id"]})


@router.put("/{task_id}", response_model=task_schema.Task)
def update_task(
    task_id: str,
    updates: task_schema.TaskUpdate,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.project_editors)
):
    task = load_visible_task(storage, current_user, task_id)
    load_modifiable_project(storage, current_user, task["projectId"])
    updated = storage.update_task(task_id, updates.to_record(partial=True))
    if updated is None:
        raise NotFoundException("Task", task_id)
    return updated


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.project_editors)
):
    task = load_visible_task(storage, current_user, task_id)
    load_modifiable_project(storage, current_user, task["projectId"])
    if not storage.delete_task(task_id):
        raise NotFoundException("Task", task_id)
    return


@router.post("/{task_id}/clone", response_model=task_schema.Task, status_code=status.HTTP_201_CREATED)
def clone_task(
    task_id: str,
    clone_in: task_schema.TaskClone,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.project_editors)
):
    """ Copies a task into another project with its progress reset. """
    load_visible_task(storage, current_user, task_id)
    load_modifiable_project(storage, current_user, clone_in.target_project_id)
    clone = storage.clone_task(task_id, clone_in.target_project_id, current_user["id"])
    if clone is None:
        raise NotFoundException("Task", task_id)
    return clone
