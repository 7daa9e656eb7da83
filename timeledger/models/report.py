"""Report model definitions."""
from datetime import date, datetime

from pydantic import BaseModel, Field


class DayTotal(BaseModel):
    """Seconds logged on one local day of the week."""

    day_of_week: int = Field(ge=0, le=6)  # 0=Sunday
    total_seconds: int = 0
    hours: int = 0
    minutes: int = 0
    formatted: str = "0h 0m"


class DailyTotalsReport(BaseModel):
    """Week view: one bucket per day of week."""

    user_id: str
    start_date: date
    end_date: date
    tz_offset_minutes: int
    week_totals: list[DayTotal]


class TaskTotal(BaseModel):
    """Per-task totals, split by day of week."""

    task_id: str
    task_name: str
    project_id: str
    project_name: str = ""
    client_name: str = ""
    total_seconds: int = 0
    cost: float = 0.0
    day_totals: list[DayTotal]


class TaskTotalsReport(BaseModel):
    """Timesheet grid: one row per task."""

    user_id: str
    start_date: date
    end_date: date
    tz_offset_minutes: int
    tasks: list[TaskTotal]


class ProjectTotal(BaseModel):
    """Per-project totals over a raw UTC range."""

    project_id: str
    project_name: str = ""
    client_name: str = ""
    total_seconds: int = 0
    cost: float = 0.0


class ProjectTotalsReport(BaseModel):
    """Billing view over a raw UTC range."""

    user_id: str
    start: datetime
    end: datetime
    projects: list[ProjectTotal]
    total_seconds: int = 0
    total_cost: float = 0.0
