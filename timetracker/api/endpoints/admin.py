# timetracker/api/endpoints/admin.py
import logging
from typing import List

from fastapi import APIRouter, Depends, status

from timetracker.core import security
from timetracker.core.dependencies import get_storage
from timetracker.core.exceptions import DuplicateException, NotFoundException, ValidationException
from timetracker.schemas import employee as employee_schema
from timetracker.schemas import user as user_schema
from timetracker.storage.base import Record, Storage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/users", response_model=List[user_schema.User])
def list_users(
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    return storage.list_users()


@router.get("/users/without-employee", response_model=List[user_schema.User])
def list_users_without_employee(
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    """ Users that no employee record links to yet. """
    return storage.list_users_without_employee()


@router.get("/users/{user_id}", response_model=user_schema.User)
def read_user(
    user_id: str,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    user = storage.get_user(user_id)
    if user is None:
        raise NotFoundException("User", user_id)
    return user


@router.post("/users", response_model=user_schema.User, status_code=status.HTTP_201_CREATED)
def create_user(
    user_in: user_schema.UserCreate,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    """
    Pre-provisions a user so their first SSO login lands on the right role.
    """
    data = user_in.to_record()
    data["email"] = data["email"].lower()
    if storage.get_user_by_email(data["email"]) is not None:
        raise DuplicateException("User", "email", data["email"])
    user = storage.create_user(data)
    logger.info("Admin %s created user %s with role %s", admin["email"], user["email"], user["role"])
    return user


@router.put("/users/{user_id}", response_model=user_schema.User)
def update_user(
    user_id: str,
    updates: user_schema.UserUpdate,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    user = storage.update_user(user_id, updates.to_record(partial=True))
    if user is None:
        raise NotFoundException("User", user_id)
    return user


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    if user_id == admin["id"]:
        raise ValidationException.for_field("userId", "You cannot delete your own account")
    if not storage.delete_user(user_id):
        raise NotFoundException("User", user_id)
    logger.info("Admin %s deleted user %s", admin["email"], user_id)
    return


@router.post("/users/{user_id}/role", response_model=user_schema.User)
def change_user_role(
    user_id: str,
    role_in: user_schema.RoleChange,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    """ Changes another user's role. Admins cannot demote themselves. """
    if user_id == admin["id"] and role_in.role != security.ADMIN:
        raise ValidationException.for_field("role", "You cannot remove your own admin role")
    user = storage.update_user_role(user_id, role_in.role)
    if user is None:
        raise NotFoundException("User", user_id)
    logger.info("Admin %s set role of %s to %s", admin["email"], user["email"], role_in.role)
    return user


@router.post("/employees/{employee_id}/link-user", response_model=employee_schema.Employee)
def link_employee_user(
    employee_id: str,
    link_in: employee_schema.EmployeeUserLink,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    if storage.get_user(link_in.user_id) is None:
        raise ValidationException.for_field("userId", "User not found")
    employee = storage.link_employee_user(employee_id, link_in.user_id)
    if employee is None:
        raise NotFoundException("Employee", employee_id)
    return employee
