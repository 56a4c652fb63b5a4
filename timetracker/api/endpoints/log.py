# timetracker/api/endpoints/log.py
import logging

from fastapi import APIRouter, Depends, Request

from timetracker.core import security
from timetracker.schemas import log as log_schema
from timetracker.storage.base import Record

logger = logging.getLogger("timetracker.frontend")

router = APIRouter()

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@router.post("/frontend-error")
def log_frontend_error(
    report: log_schema.FrontendErrorReport,
    request: Request,
    current_user: Record = Depends(security.any_signed_in)
):
    """
    Writes an error reported by the browser client to the server log.
    """
    level = LEVELS.get((report.level or "error").lower(), logging.ERROR)
    logger.log(
        level, "%s [FRONTEND-%s] %s url=%s user=%s ip=%s user_agent=%s data=%s",
        report.timestamp or "-", report.category, report.message, report.url, current_user["id"],
        request.client.host if request.client else None, report.user_agent, report.data,
    )
    return {"success": True}
