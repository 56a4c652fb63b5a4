# timetracker/api/endpoints/projects.py
from typing import List

from fastapi import APIRouter, Depends, status

from timetracker.core import security
from timetracker.core.dependencies import get_storage
from timetracker.core.exceptions import AuthorizationDenied, NotFoundException
from timetracker.schemas import employee as employee_schema
from timetracker.schemas import project as project_schema
from timetracker.schemas import task as task_schema
from timetracker.storage.base import Record, Storage

router = APIRouter()


def load_visible_project(storage: Storage, user: Record, project_id: str) -> Record:
    project = storage.get_project(project_id)
    if project is None or not security.can_view_project(user, project):
        raise NotFoundException("Project", project_id)
    return project


def load_modifiable_project(storage: Storage, user: Record, project_id: str) -> Record:
    project = load_visible_project(storage, user, project_id)
    if not security.can_modify_project(user, project):
        raise AuthorizationDenied("Only the project owner or an admin can change this project")
    return project


@router.get("", response_model=List[project_schema.Project])
def list_projects(
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    """ Lists the projects visible to the caller. """
    visible_to = None if security.sees_everything(current_user) else current_user["id"]
    return storage.list_projects(visible_to=visible_to)


@router.get("/{project_id}", response_model=project_schema.Project)
def read_project(
    project_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    return load_visible_project(storage, current_user, project_id)


@router.post("", response_model=project_schema.Project, status_code=status.HTTP_201_CREATED)
def create_project(
    project_in: project_schema.ProjectCreate,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.project_editors)
):
    """ Creates a project owned by the caller. """
    return storage.create_project({**project_in.to_record(), "userId": current_user["id"]})


@router.put("/{project_id}", response_model=project_schema.Project)
@router.patch("/{project_id}", response_model=project_schema.Project)
def update_project(
    project_id: str,
    updates: project_schema.ProjectUpdate,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.project_editors)
):
    """ Partially updates a project; fields missing from the body are left untouched. """
    load_modifiable_project(storage, current_user, project_id)
    project = storage.update_project(project_id, updates.to_record(partial=True))
    if project is None:
        raise NotFoundException("Project", project_id)
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.project_editors)
):
    """
    Deletes a project together with its tasks and employee assignments.
    Time entries logged against it are kept.
    """
    load_modifiable_project(storage, current_user, project_id)
    if not storage.delete_project(project_id):
        raise NotFoundException("Project", project_id)
    return


@router.get("/{project_id}/employees", response_model=List[employee_schema.Employee])
def list_project_employees(
    project_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.project_editors)
):
    load_visible_project(storage, current_user, project_id)
    return storage.list_project_employees(project_id)


@router.post("/{project_id}/employees", response_model=List[project_schema.ProjectAssignment],
             status_code=status.HTTP_201_CREATED)
def assign_project_employees(
    project_id: str,
    assignment_in: project_schema.ProjectEmployeesAssign,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.project_editors)
):
    """ Assigns employees to a project; already-assigned employees are skipped. """
    load_modifiable_project(storage, current_user, project_id)
    created = storage.assign_project_employees(project_id, assignment_in.employee_ids, current_user["id"])
    if created is None:
        raise NotFoundException("Project", project_id)
    return created


@router.delete("/{project_id}/employees/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_project_employee(
    project_id: str,
    employee_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.project_editors)
):
    load_modifiable_project(storage, current_user, project_id)
    if not storage.remove_project_employee(project_id, employee_id):
        raise NotFoundException("Project assignment", employee_id)
    return


@router.get("/{project_id}/tasks", response_model=List[task_schema.Task])
def list_project_tasks(
    project_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    load_visible_project(storage, current_user, project_id)
    return storage.list_tasks(project_id=project_id)
