# timetracker/api/endpoints/reports.py
from typing import List

from fastapi import APIRouter, Depends

from timetracker.api.endpoints.projects import load_visible_project
from timetracker.core import security
from timetracker.core.dependencies import get_storage
from timetracker.schemas import time_entry as time_entry_schema
from timetracker.storage.base import Record, Storage

router = APIRouter()


@router.get("/project-time-entries/{project_id}", response_model=List[time_entry_schema.TimeEntry])
def read_project_time_entries(
    project_id: str,
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.report_viewers)
):
    """ Every time entry logged against a project, with who logged it. """
    load_visible_project(storage, current_user, project_id)
    return storage.list_project_time_entries(project_id)
