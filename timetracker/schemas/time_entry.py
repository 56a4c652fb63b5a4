# timetracker/schemas/time_entry.py
from datetime import date as date_type, datetime
from typing import Annotated, Literal, Optional

from pydantic import Field, ValidationInfo, field_validator

from timetracker.schemas.common import CamelModel, NotNull, naive_utc

TimeEntryStatus = Literal["draft", "submitted", "approved", "rejected"]
OptionalFlag = Annotated[Optional[bool], NotNull]


class TimeEntryBase(CamelModel):
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)

    @field_validator("end_time")
    @classmethod
    def end_after_start(cls, end_time: Optional[datetime], info: ValidationInfo) -> Optional[datetime]:
        start_time = info.data.get("start_time")
        if end_time and start_time and end_time < start_time:
            raise ValueError("End time must be on or after start time")
        return end_time


class TimeEntryCreate(TimeEntryBase):
    date: date_type
    hours: float = Field(ge=0, le=24)
    duration: Optional[float] = Field(default=None, ge=0)
    status: TimeEntryStatus = "draft"
    billable: bool = False
    is_billable: bool = False
    is_approved: bool = False
    is_manual_entry: bool = True
    is_timer_entry: bool = False
    is_template: bool = False

    def to_record(self, partial: bool = False) -> dict:
        record = super().to_record(partial)
        if record.get("duration") is None:
            record["duration"] = self.hours
        return record


class TimeEntryUpdate(TimeEntryBase):
    date: Annotated[Optional[date_type], NotNull] = None
    hours: Annotated[Optional[float], NotNull, Field(ge=0, le=24)] = None
    duration: Annotated[Optional[float], NotNull, Field(ge=0)] = None
    status: Annotated[Optional[TimeEntryStatus], NotNull] = None
    billable: OptionalFlag = None
    is_billable: OptionalFlag = None
    is_approved: OptionalFlag = None
    is_manual_entry: OptionalFlag = None
    is_timer_entry: OptionalFlag = None
    is_template: OptionalFlag = None


class TimeEntryUser(CamelModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class TimeEntry(TimeEntryBase):
    id: str
    user_id: str
    date: date_type
    hours: float
    duration: float
    status: TimeEntryStatus
    billable: bool
    is_billable: bool
    is_approved: bool
    is_manual_entry: bool
    is_timer_entry: bool
    is_template: bool
    created_at: datetime
    updated_at: datetime
    project_name: Optional[str] = None
    task_title: Optional[str] = None
    user: Optional[TimeEntryUser] = None
