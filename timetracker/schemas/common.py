# timetracker/schemas/common.py
from datetime import datetime, timezone
from typing import Optional

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def to_record(self, partial: bool = False) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=partial)


def _reject_null(value):
    if value is None:
        raise ValueError("Field may not be null")
    return value


# Optional in a partial update, but an explicit null is rejected.
NotNull = AfterValidator(_reject_null)


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Message(BaseModel):
    message: str
