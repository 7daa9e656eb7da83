"""Report service - aggregation of logged time.

Two report families live here and deliberately compare dates differently:

* the day-bucketing family (``daily_totals``, ``task_totals``) takes local
  calendar dates and keeps an entry when its *local* date falls inside the
  window;
* the range-filter family (``project_totals``) takes instants and compares
  them raw, in UTC, against the entry's effective instant.

Ongoing timers never count; they are reported by the timer service.
"""
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, NamedTuple, Optional

from bson import ObjectId

from timeledger.errors import ValidationError
from timeledger.models.report import (
    DailyTotalsReport,
    DayTotal,
    ProjectTotal,
    ProjectTotalsReport,
    TaskTotal,
    TaskTotalsReport,
)
from timeledger.models.time_entry import Manual, Ongoing
from timeledger.utils.duration import elapsed_seconds, format_duration, to_span
from timeledger.utils.ids import entry_task_id
from timeledger.utils.timezone import (
    local_date,
    local_day_bounds,
    to_naive_utc,
    utcnow,
    validate_offset,
    week_window,
)

CENT = Decimal("0.01")


class TaskContext(NamedTuple):
    """A live task with its project and (optional) client."""

    task: dict
    project: dict
    client: Optional[dict]


class QualifiedEntry(NamedTuple):
    """A completed or manual entry on a live task."""

    task_id: str
    context: TaskContext
    seconds: int
    effective: datetime


def entry_cost(seconds: int, pay_rate: Decimal) -> Decimal:
    """
    Cost of one entry, rounded to cents before it is summed.

    Examples:
        >>> entry_cost(5400, Decimal("33.33"))
        Decimal('50.00')
    """
    return (Decimal(seconds) / Decimal(3600) * pay_rate).quantize(CENT, rounding=ROUND_HALF_UP)


def effective_instant(doc: dict) -> datetime:
    """start_time for timed entries, created_at for duration entries."""
    span = to_span(doc)
    if isinstance(span, Manual):
        return doc["created_at"]
    return span.start


def _day_totals(buckets: list[int]) -> list[DayTotal]:
    totals = []
    for day, seconds in enumerate(buckets):
        hours, remainder = divmod(seconds, 3600)
        totals.append(DayTotal(
            day_of_week=day,
            total_seconds=seconds,
            hours=hours,
            minutes=remainder // 60,
            formatted=format_duration(seconds),
        ))
    return totals


def _object_ids(ids) -> list[ObjectId]:
    return [ObjectId(value) for value in ids if value and ObjectId.is_valid(str(value))]


class ReportService:
    """Service for aggregating time entries into reports."""

    def __init__(self, db, clock: Optional[Callable[[], datetime]] = None):
        """Initialize service with database connection."""
        self.db = db
        self.time_entries = db["time_entries"]
        self.tasks = db["tasks"]
        self.projects = db["projects"]
        self.clients = db["clients"]
        self.users = db["users"]
        self.task_assignments = db["task_assignments"]
        self.clock = clock or utcnow

    async def _pay_rate(self, user_id: str) -> Decimal:
        if not ObjectId.is_valid(user_id):
            return Decimal(0)
        user = await self.users.find_one({"_id": ObjectId(user_id)})
        if not user or user.get("pay_rate") is None:
            return Decimal(0)
        return Decimal(str(user["pay_rate"]))

    async def _task_contexts(self, task_ids) -> dict[str, TaskContext]:
        """Live tasks: neither the task, its project nor its client archived."""
        tasks = await self.tasks.find({"_id": {"$in": _object_ids(task_ids)}}).to_list(length=None)

        project_ids = {task["project_id"] for task in tasks}
        projects = await self.projects.find({"_id": {"$in": _object_ids(project_ids)}}).to_list(length=None)
        projects_by_id = {str(project["_id"]): project for project in projects}

        client_ids = {project.get("client_id") for project in projects}
        clients = await self.clients.find({"_id": {"$in": _object_ids(client_ids)}}).to_list(length=None)
        clients_by_id = {str(client["_id"]): client for client in clients}

        contexts = {}
        for task in tasks:
            if task.get("archived"):
                continue
            project = projects_by_id.get(task["project_id"])
            if not project or project.get("archived"):
                continue
            client = None
            if project.get("client_id"):
                client = clients_by_id.get(project["client_id"])
                if not client or client.get("archived"):
                    continue
            contexts[str(task["_id"])] = TaskContext(task, project, client)
        return contexts

    async def _qualified_entries(
        self,
        user_id: str,
        lower: datetime,
        upper: datetime,
    ) -> list[QualifiedEntry]:
        """
        Completed and manual entries of the user whose effective instant
        lies in ``[lower, upper]`` (UTC) and whose task is live.
        """
        window = {"$gte": lower, "$lte": upper}
        docs = await self.time_entries.find({
            "user_id": user_id,
            "$or": [{"start_time": window}, {"created_at": window}],
        }).to_list(length=None)

        candidates = []
        for doc in docs:
            if isinstance(to_span(doc), Ongoing):
                continue
            effective = effective_instant(doc)
            if lower <= effective <= upper:
                candidates.append((doc, effective))

        contexts = await self._task_contexts({entry_task_id(doc) for doc, _ in candidates})

        qualified = []
        for doc, effective in candidates:
            task_id = entry_task_id(doc)
            if task_id not in contexts:
                continue
            qualified.append(QualifiedEntry(task_id, contexts[task_id], elapsed_seconds(doc), effective))
        return qualified

    def _date_window(
        self,
        start: Optional[date],
        end: Optional[date],
        offset: int,
    ) -> tuple[date, date]:
        """Requested local dates, defaulting to the current local week."""
        if start is None and end is None:
            return week_window(self.clock(), offset)
        if start is None:
            start = end - timedelta(days=6)
        if end is None:
            end = start + timedelta(days=6)
        if start > end:
            raise ValidationError("start must not be after end")
        return start, end

    async def _bucketed_entries(
        self,
        user_id: str,
        start: date,
        end: date,
        offset: int,
    ) -> list[tuple[QualifiedEntry, int]]:
        """Entries whose local date is within [start, end], with their day of week."""
        lower, _ = local_day_bounds(start, offset)
        upper = local_day_bounds(end, offset)[0] + timedelta(days=1, microseconds=-1)

        bucketed = []
        for entry in await self._qualified_entries(user_id, lower, upper):
            day = local_date(entry.effective, offset)
            if start <= day.as_date() <= end:
                bucketed.append((entry, day.day_of_week))
        return bucketed

    async def daily_totals(
        self,
        user_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        tz_offset_minutes: Optional[int] = None,
    ) -> DailyTotalsReport:
        """
        Seconds per local day of week over a window of local dates.

        Without an offset, days are UTC days.

        Args:
            user_id: User ID
            start: First local date (defaults to this week's Sunday)
            end: Last local date, inclusive (defaults to this week's Saturday)
            tz_offset_minutes: Minutes the user's zone is behind UTC

        Returns:
            Seven day totals, Sunday first
        """
        offset = validate_offset(tz_offset_minutes)
        start, end = self._date_window(start, end, offset)

        buckets = [0] * 7
        for entry, day_of_week in await self._bucketed_entries(user_id, start, end, offset):
            buckets[day_of_week] += entry.seconds

        return DailyTotalsReport(
            user_id=user_id,
            start_date=start,
            end_date=end,
            tz_offset_minutes=offset,
            week_totals=_day_totals(buckets),
        )

    async def task_totals(
        self,
        user_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        tz_offset_minutes: Optional[int] = None,
        include_cost: bool = False,
    ) -> TaskTotalsReport:
        """
        Per-task totals split by local day of week.

        Tasks assigned to the user appear even without logged time, except
        system tasks, which only appear when time was logged against them.
        Cost is zero unless ``include_cost``.
        """
        offset = validate_offset(tz_offset_minutes)
        start, end = self._date_window(start, end, offset)
        pay_rate = await self._pay_rate(user_id) if include_cost else Decimal(0)

        rows: dict[str, dict] = {}

        def row_for(task_id: str, context: TaskContext) -> dict:
            if task_id not in rows:
                rows[task_id] = {"context": context, "buckets": [0] * 7, "cost": Decimal(0)}
            return rows[task_id]

        for entry, day_of_week in await self._bucketed_entries(user_id, start, end, offset):
            row = row_for(entry.task_id, entry.context)
            row["buckets"][day_of_week] += entry.seconds
            if include_cost:
                row["cost"] += entry_cost(entry.seconds, pay_rate)

        assigned = await self.task_assignments.distinct("task_id", {"user_id": user_id})
        for task_id, context in (await self._task_contexts(assigned)).items():
            if not context.task.get("is_system"):
                row_for(task_id, context)

        tasks = []
        for task_id, row in rows.items():
            context = row["context"]
            tasks.append(TaskTotal(
                task_id=task_id,
                task_name=context.task.get("name", ""),
                project_id=context.task["project_id"],
                project_name=context.project.get("name", ""),
                client_name=context.client.get("name", "") if context.client else "",
                total_seconds=sum(row["buckets"]),
                cost=float(row["cost"]),
                day_totals=_day_totals(row["buckets"]),
            ))
        tasks.sort(key=lambda total: (total.project_name, total.task_name))

        return TaskTotalsReport(
            user_id=user_id,
            start_date=start,
            end_date=end,
            tz_offset_minutes=offset,
            tasks=tasks,
        )

    async def project_totals(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        tz_offset_minutes: Optional[int] = None,
        include_cost: bool = False,
    ) -> ProjectTotalsReport:
        """
        Per-project seconds and cost over a raw UTC range.

        The default range is Sunday 00:00:00 to Saturday 23:59:59 of the
        current week, local to the offset. Cost is hours times the user's
        pay rate, rounded per entry, and zero unless ``include_cost``.
        """
        offset = validate_offset(tz_offset_minutes)
        if start is None or end is None:
            sunday, saturday = week_window(self.clock(), offset)
            start = to_naive_utc(start) if start else local_day_bounds(sunday, offset)[0]
            end = to_naive_utc(end) if end else local_day_bounds(saturday, offset)[1]
        else:
            start, end = to_naive_utc(start), to_naive_utc(end)
        if start > end:
            raise ValidationError("start must not be after end")

        pay_rate = await self._pay_rate(user_id) if include_cost else Decimal(0)

        totals: dict[str, dict] = {}
        for entry in await self._qualified_entries(user_id, start, end):
            project_id = entry.context.task["project_id"]
            bucket = totals.setdefault(project_id, {"context": entry.context, "seconds": 0, "cost": Decimal(0)})
            bucket["seconds"] += entry.seconds
            if include_cost:
                bucket["cost"] += entry_cost(entry.seconds, pay_rate)

        projects = [
            ProjectTotal(
                project_id=project_id,
                project_name=bucket["context"].project.get("name", ""),
                client_name=bucket["context"].client.get("name", "") if bucket["context"].client else "",
                total_seconds=bucket["seconds"],
                cost=float(bucket["cost"]),
            )
            for project_id, bucket in totals.items()
        ]
        projects.sort(key=lambda total: total.total_seconds, reverse=True)

        return ProjectTotalsReport(
            user_id=user_id,
            start=start,
            end=end,
            projects=projects,
            total_seconds=sum(bucket["seconds"] for bucket in totals.values()),
            total_cost=float(sum((bucket["cost"] for bucket in totals.values()), Decimal(0))),
        )
