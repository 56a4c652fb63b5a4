# timetracker/api/endpoints/organizations.py
from typing import List

from fastapi import APIRouter, Depends, status

from timetracker.core import security
from timetracker.core.dependencies import get_storage
from timetracker.core.exceptions import NotFoundException
from timetracker.schemas import organization as org_schema
from timetracker.storage.base import Record, Storage

router = APIRouter()


@router.get("", response_model=List[org_schema.Organization])
def list_organizations(
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    return storage.list_organizations()


@router.get("/{organization_id}", response_model=org_schema.Organization)
def read_organization(
    organization_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    organization = storage.get_organization(organization_id)
    if organization is None:
        raise NotFoundException("Organization", organization_id)
    return organization


@router.post("", response_model=org_schema.Organization, status_code=status.HTTP_201_CREATED)
def create_organization(
    organization_in: org_schema.OrganizationCreate,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    return storage.create_organization({**organization_in.to_record(), "userId": admin["id"]})


@router.put("/{organization_id}", response_model=org_schema.Organization)
def update_organization(
    organization_id: str,
    updates: org_schema.OrganizationUpdate,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    organization = storage.update_organization(organization_id, updates.to_record(partial=True))
    if organization is None:
        raise NotFoundException("Organization", organization_id)
    return organization


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_organization(
    organization_id: str,
    storage: Storage = Depends(get_storage),
    admin: Record = Depends(security.admin_only)
):
    """ Deletes an organization; refused with 409 while departments or projects still reference it. """
    if not storage.delete_organization(organization_id):
        raise NotFoundException("Organization", organization_id)
    return


@router.get("/{organization_id}/departments", response_model=List[org_schema.Department])
def list_organization_departments(
    organization_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    if storage.get_organization(organization_id) is None:
        raise NotFoundException("Organization", organization_id)
    return storage.list_departments_by_organization(organization_id)
