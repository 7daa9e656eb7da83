"""Timer request/response models."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from timeledger.models.time_entry import TimeEntry


class TimerStart(BaseModel):
    """Request model for starting a timer."""

    task_id: str
    notes: Optional[str] = None
    client_time_ms: Optional[int] = None


class TimerStop(BaseModel):
    """Request model for stopping a timer."""

    timer_id: str
    end_time: Optional[datetime] = None
    client_time_ms: Optional[int] = None
    notes: Optional[str] = None


class TimerSnapshot(BaseModel):
    """A running timer as seen at query time."""

    timer_id: str
    user_id: str
    task_id: str
    start_time: datetime
    elapsed_seconds: int
    notes: Optional[str] = None


class StoppedTimer(BaseModel):
    """Result of stopping a timer."""

    entry: TimeEntry
    duration_seconds: int
