# timetracker/schemas/log.py
from typing import Any, Optional

from pydantic import Field

from timetracker.schemas.common import CamelModel


class FrontendErrorReport(CamelModel):
    timestamp: Optional[str] = Field(None, max_length=64)
    level: Optional[str] = Field(None, max_length=16)
    category: str = Field("GENERAL", max_length=64)
    message: str = Field(..., max_length=4000)
    data: Optional[Any] = None
    url: Optional[str] = Field(None, max_length=2048)
    user_agent: Optional[str] = Field(None, max_length=512)
