"""Time entry model definitions."""
from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class Ongoing(BaseModel):
    """A running timer: started, not yet stopped."""

    kind: Literal["ongoing"] = "ongoing"
    start: datetime


class Manual(BaseModel):
    """A duration recorded directly, without timestamps."""

    kind: Literal["manual"] = "manual"
    seconds: int = Field(ge=0)


class Completed(BaseModel):
    """A stopped timer or an entry logged with a start/end pair."""

    kind: Literal["completed"] = "completed"
    start: datetime
    end: datetime


EntrySpan = Annotated[Union[Ongoing, Manual, Completed], Field(discriminator="kind")]


class TimeEntryBase(BaseModel):
    """Base time entry fields (flat storage shape)."""

    task_id: str
    notes: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    manual_duration_seconds: Optional[int] = Field(default=None, ge=0)


class TimeEntryCreate(BaseModel):
    """
    Time entry creation model.

    Exactly one way of expressing the time must be used: a start/end pair,
    local component times on ``task_date``, or a duration.
    """

    task_id: str
    notes: Optional[str] = None

    # ISO instants
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    # Local wall-clock components
    task_date: Optional[date] = None
    start_hours: Optional[int] = Field(default=None, ge=0, le=23)
    start_minutes: Optional[int] = Field(default=None, ge=0, le=59)
    end_hours: Optional[int] = Field(default=None, ge=0, le=23)
    end_minutes: Optional[int] = Field(default=None, ge=0, le=59)
    tz_offset_minutes: Optional[int] = None

    # Duration, either in seconds or as text ("2h", "90m", "4:15")
    duration_seconds: Optional[int] = Field(default=None, ge=0)
    duration: Optional[str] = None


class TimeEntryUpdate(BaseModel):
    """Time entry update model - all fields optional."""

    task_id: Optional[str] = None
    notes: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_seconds: Optional[int] = Field(default=None, ge=0)
    duration: Optional[str] = None
    created_at: Optional[datetime] = None


class TimeEntry(TimeEntryBase):
    """Full time entry model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    duration_seconds: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}
