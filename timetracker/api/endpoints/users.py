# timetracker/api/endpoints/users.py
from fastapi import APIRouter, Depends

from timetracker.core import security
from timetracker.schemas import user as user_schema
from timetracker.storage.base import Record

router = APIRouter()


@router.get("/me", response_model=user_schema.User)
def read_user_me(current_user: Record = Depends(security.get_current_user)):
    """
    Get the details for the currently logged-in user.
    """
    return current_user


@router.get("/current-role", response_model=user_schema.CurrentRole)
def read_current_role(current_user: Record = Depends(security.get_current_user)):
    """ Returns the caller's role and the permissions it grants. """
    role = current_user.get("role") or security.EMPLOYEE
    return {"role": role, "permissions": list(security.get_role_permissions(role))}
