# timetracker/api/endpoints/employees.py
from typing import List

from fastapi import APIRouter, Depends, status

from timetracker.core import security
from timetracker.core.dependencies import get_storage
from timetracker.core.exceptions import NotFoundException
from timetracker.schemas import employee as employee_schema
from timetracker.storage.base import Record, Storage

router = APIRouter()


@router.get("", response_model=List[employee_schema.Employee])
def list_employees(
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    return storage.list_employees()


@router.get("/{employee_id}", response_model=employee_schema.Employee)
def read_employee(
    employee_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    employee = storage.get_employee(employee_id)
    if employee is None:
        raise NotFoundException("Employee", employee_id)
    return employee


@router.post("", response_model=employee_schema.Employee, status_code=status.HTTP_201_CREATED)
def create_employee(
    employee_in: employee_schema.EmployeeCreate,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.people_managers)
):
    """ Creates an employee record; it is attributed to the caller unless a user account is given. """
    data = employee_in.to_record()
    data["userId"] = data.get("userId") or current_user["id"]
    return storage.create_employee(data)


@router.put("/{employee_id}", response_model=employee_schema.Employee)
def update_employee(
    employee_id: str,
    updates: employee_schema.EmployeeUpdate,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.people_managers)
):
    employee = storage.update_employee(employee_id, updates.to_record(partial=True))
    if employee is None:
        raise NotFoundException("Employee", employee_id)
    return employee


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_employee(
    employee_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.people_managers)
):
    """ Deletes an employee and their project assignments; departments they managed lose their manager. """
    if not storage.delete_employee(employee_id):
        raise NotFoundException("Employee", employee_id)
    return
