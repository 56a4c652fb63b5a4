# timetracker/api/endpoints/departments.py
from typing import List

from fastapi import APIRouter, Depends, status

from timetracker.core import security
from timetracker.core.dependencies import get_storage
from timetracker.core.exceptions import NotFoundException, ValidationException
from timetracker.schemas import organization as org_schema
from timetracker.storage.base import Record, Storage

router = APIRouter()


def check_references(storage: Storage, data: Record) -> None:
    if data.get("organizationId") and storage.get_organization(data["organizationId"]) is None:
        raise ValidationException.for_field("organizationId", "Organization not found")
    if data.get("managerId") and storage.get_employee(data["managerId"]) is None:
        raise ValidationException.for_field("managerId", "Employee not found")


@router.get("", response_model=List[org_schema.Department])
def list_departments(
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    return storage.list_departments()


@router.get("/{department_id}", response_model=org_schema.Department)
def read_department(
    department_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    department = storage.get_department(department_id)
    if department is None:
        raise NotFoundException("Department", department_id)
    return department


@router.post("", response_model=org_schema.Department, status_code=status.HTTP_201_CREATED)
def create_department(
    department_in: org_schema.DepartmentCreate,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    data = department_in.to_record()
    check_references(storage, data)
    return storage.create_department({**data, "userId": admin["id"]})


@router.put("/{department_id}", response_model=org_schema.Department)
def update_department(
    department_id: str,
    updates: org_schema.DepartmentUpdate,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    data = updates.to_record(partial=True)
    check_references(storage, data)
    department = storage.update_department(department_id, data)
    if department is None:
        raise NotFoundException("Department", department_id)
    return department


@router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_department(
    department_id: str,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    if not storage.delete_department(department_id):
        raise NotFoundException("Department", department_id)
    return


@router.post("/{department_id}/manager", response_model=org_schema.Department)
def assign_department_manager(
    department_id: str,
    manager_in: org_schema.DepartmentManager,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    """ Sets or clears (``managerId: null``) the department's manager. """
    department = storage.assign_department_manager(department_id, manager_in.manager_id)
    if department is None:
        raise NotFoundException("Department", department_id)
    return department
