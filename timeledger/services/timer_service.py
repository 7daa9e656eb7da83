"""Timer service - business logic for time tracking."""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from pymongo.errors import DuplicateKeyError

from timeledger.errors import ConflictError, NotFoundError, ValidationError
from timeledger.models.task import TaskStatus
from timeledger.models.time_entry import (
    Completed,
    Manual,
    Ongoing,
    TimeEntry,
    TimeEntryCreate,
    TimeEntryUpdate,
)
from timeledger.models.timer import StoppedTimer, TimerSnapshot
from timeledger.utils.duration import (
    elapsed_seconds,
    normalized_fields,
    parse_duration,
    seconds_between,
    span_fields,
    to_span,
)
from timeledger.utils.ids import canonical_id, entry_task_id, parse_object_id
from timeledger.utils.timezone import (
    from_epoch_ms,
    local_to_utc,
    to_naive_utc,
    utcnow,
    validate_offset,
)

logger = logging.getLogger(__name__)

# A running timer: started, not stopped, no manual duration.
ONGOING_FILTER = {
    "start_time": {"$ne": None},
    "end_time": None,
    "manual_duration_seconds": None,
}


class TimerService:
    """Service for handling time tracking operations."""

    def __init__(self, db, clock: Optional[Callable[[], datetime]] = None):
        """Initialize service with database connection and a UTC clock."""
        self.db = db
        self.time_entries = db["time_entries"]
        self.tasks = db["tasks"]
        self.clock = clock or utcnow

    def _doc_to_entry(self, doc: dict) -> TimeEntry:
        """
        Convert database document to TimeEntry model.

        Legacy documents are normalized on the way out, so callers always see
        exactly one duration representation.
        """
        span = to_span(doc)
        return TimeEntry(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            task_id=entry_task_id(doc),
            notes=doc.get("notes"),
            duration_seconds=None if isinstance(span, Ongoing) else elapsed_seconds(span),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
            **span_fields(span),
        )

    def _doc_to_snapshot(self, doc: dict, now: datetime) -> TimerSnapshot:
        return TimerSnapshot(
            timer_id=str(doc["_id"]),
            user_id=doc["user_id"],
            task_id=entry_task_id(doc),
            start_time=doc["start_time"],
            elapsed_seconds=seconds_between(doc["start_time"], now),
            notes=doc.get("notes"),
        )

    async def _get_task(self, task_id: str) -> dict:
        """Fetch a live (non-archived) task or raise NotFoundError."""
        task = await self.tasks.find_one({
            "_id": parse_object_id(task_id, "task"),
            "archived": {"$ne": True},
        })
        if not task:
            raise NotFoundError("Task not found")
        return task

    async def _mark_in_progress(self, task: dict) -> None:
        """Logging time against a pending task moves it to in-progress."""
        await self.tasks.update_one(
            {"_id": task["_id"], "status": TaskStatus.PENDING.value},
            {"$set": {"status": TaskStatus.IN_PROGRESS.value}},
        )

    async def _find_running(self, user_id: str) -> Optional[dict]:
        return await self.time_entries.find_one({"user_id": user_id, **ONGOING_FILTER})

    async def start_timer(
        self,
        user_id: str,
        task_id: str,
        notes: Optional[str] = None,
        client_time_ms: Optional[int] = None,
    ) -> TimerSnapshot:
        """
        Start a new timer.

        Args:
            user_id: User ID
            task_id: Task to track time against
            notes: Optional notes
            client_time_ms: Optional client wall clock (epoch ms); used as the
                start instant when present

        Returns:
            Snapshot of the new timer (elapsed_seconds is 0)

        Raises:
            ConflictError: If a timer is already running for the user
            NotFoundError: If the task doesn't exist
            ValidationError: If the client time is out of range
        """
        if await self._find_running(user_id):
            raise ConflictError("Timer already running")

        task = await self._get_task(task_id)

        now = self.clock()
        start_time = from_epoch_ms(client_time_ms) if client_time_ms is not None else now

        entry_doc = {
            "user_id": user_id,
            "task_id": str(task["_id"]),
            "notes": notes,
            "start_time": start_time,
            "end_time": None,
            "manual_duration_seconds": None,
            "running": True,
            "created_at": now,
            "updated_at": now,
        }

        # The partial unique index rejects a second running timer even if a
        # concurrent start slipped past the check above.
        try:
            result = await self.time_entries.insert_one(entry_doc)
        except DuplicateKeyError:
            raise ConflictError("Timer already running") from None
        entry_doc["_id"] = result.inserted_id

        await self._mark_in_progress(task)
        logger.info("Timer %s started for user %s on task %s", result.inserted_id, user_id, task_id)

        return self._doc_to_snapshot(entry_doc, start_time)

    async def stop_timer(
        self,
        user_id: str,
        timer_id: str,
        end_time: Optional[datetime] = None,
        client_time_ms: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> StoppedTimer:
        """
        Stop a running timer.

        Args:
            user_id: User ID
            timer_id: ID of the running time entry
            end_time: Optional explicit end instant
            client_time_ms: Optional client wall clock (epoch ms), used when no
                explicit end is given
            notes: Optional replacement notes

        Returns:
            The finalized entry and its duration in seconds

        Raises:
            NotFoundError: If no running timer matches (timer_id, user_id)
            ValidationError: If an explicit end precedes the start, or the
                client time is out of range
        """
        query = {"_id": parse_object_id(timer_id, "timer"), "user_id": user_id, **ONGOING_FILTER}

        running_timer = await self.time_entries.find_one(query)
        if not running_timer:
            raise NotFoundError("Ongoing timer not found")

        start_time = running_timer["start_time"]
        if end_time is not None:
            end_time = to_naive_utc(end_time)
            if end_time < start_time:
                raise ValidationError("End time must be after start time")
        elif client_time_ms is not None:
            end_time = from_epoch_ms(client_time_ms)
        else:
            end_time = self.clock()

        if end_time < start_time:
            # Clock skew between client and server; never store a negative span
            logger.warning("Timer %s stop time precedes start; clamping", timer_id)
            end_time = start_time

        update_doc = {
            "end_time": end_time,
            "running": False,
            "updated_at": self.clock(),
        }
        if notes is not None:
            update_doc["notes"] = notes

        # Same filter again: a concurrent stop or force-stop leaves nothing to update
        updated_doc = await self.time_entries.find_one_and_update(
            query,
            {"$set": update_doc},
            return_document=True,
        )
        if not updated_doc:
            raise NotFoundError("Ongoing timer not found")

        entry = self._doc_to_entry(updated_doc)
        logger.info("Timer %s stopped for user %s after %ss", timer_id, user_id, entry.duration_seconds)
        return StoppedTimer(entry=entry, duration_seconds=entry.duration_seconds)

    async def force_stop_timer(self, user_id: str, timer_id: str) -> dict:
        """
        Discard a running timer without recording any time.

        Returns:
            Dictionary with deleted_count

        Raises:
            NotFoundError: If no running timer matches (timer_id, user_id)
        """
        result = await self.time_entries.delete_one({
            "_id": parse_object_id(timer_id, "timer"),
            "user_id": user_id,
            **ONGOING_FILTER,
        })

        if result.deleted_count == 0:
            raise NotFoundError("Ongoing timer not found")

        logger.info("Timer %s force-stopped for user %s", timer_id, user_id)
        return {"deleted_count": result.deleted_count}

    async def get_ongoing_timer(self, user_id: str) -> Optional[TimerSnapshot]:
        """
        Get the running timer, if any, with elapsed time on the server clock.

        Always read from the store: several API instances may serve the
        same user.
        """
        running_timer = await self._find_running(user_id)

        if not running_timer:
            return None

        return self._doc_to_snapshot(running_timer, self.clock())

    async def list_ongoing_timers(self) -> list[TimerSnapshot]:
        """All running timers across users (admin view)."""
        cursor = self.time_entries.find(ONGOING_FILTER).sort("start_time", 1)
        docs = await cursor.to_list(length=None)
        now = self.clock()
        return [self._doc_to_snapshot(doc, now) for doc in docs]

    def _span_from_create(self, entry_create: TimeEntryCreate, now: datetime):
        """Work out the span and created_at of a new manual entry."""
        offset = validate_offset(entry_create.tz_offset_minutes)
        components = (
            entry_create.start_hours,
            entry_create.start_minutes,
            entry_create.end_hours,
            entry_create.end_minutes,
        )

        if entry_create.start_time and entry_create.end_time:
            start = to_naive_utc(entry_create.start_time)
            end = to_naive_utc(entry_create.end_time)
        elif all(value is not None for value in components):
            if entry_create.task_date is None:
                raise ValidationError("Task date is required when using start/end hours")
            start = local_to_utc(entry_create.task_date, components[0], components[1], offset)
            end_day = entry_create.task_date
            # An end earlier than the start means the entry crossed midnight
            if components[2] * 60 + components[3] < components[0] * 60 + components[1]:
                end_day = end_day + timedelta(days=1)
            end = local_to_utc(end_day, components[2], components[3], offset)
        elif entry_create.duration_seconds is not None or entry_create.duration:
            if entry_create.duration_seconds is not None:
                seconds = entry_create.duration_seconds
            else:
                seconds = parse_duration(entry_create.duration)
            created_at = now
            if entry_create.task_date:
                # Anchor at local noon so the entry lands on the intended day
                created_at = local_to_utc(entry_create.task_date, 12, 0, offset)
            return Manual(seconds=seconds), created_at
        else:
            raise ValidationError("Either start/end times or a duration must be provided")

        if end <= start:
            raise ValidationError("End time must be after start time")
        return Completed(start=start, end=end), now

    async def create_entry(
        self,
        user_id: str,
        entry_create: TimeEntryCreate,
    ) -> TimeEntry:
        """
        Create a manual time entry.

        Args:
            user_id: User ID
            entry_create: Time entry creation data

        Returns:
            Created time entry

        Raises:
            NotFoundError: If the task doesn't exist
            ValidationError: If the time fields are missing or inconsistent
            ConflictError: If a duration entry is logged while a timer runs
        """
        task = await self._get_task(entry_create.task_id)

        now = self.clock()
        span, created_at = self._span_from_create(entry_create, now)

        if isinstance(span, Manual) and await self._find_running(user_id):
            raise ConflictError(
                "Cannot create a duration entry while a timer is running. Stop the timer first."
            )

        entry_doc = {
            "user_id": user_id,
            "task_id": str(task["_id"]),
            "notes": entry_create.notes,
            "running": False,
            "created_at": created_at,
            "updated_at": now,
            **span_fields(span),
        }

        result = await self.time_entries.insert_one(entry_doc)
        entry_doc["_id"] = result.inserted_id

        await self._mark_in_progress(task)

        return self._doc_to_entry(entry_doc)

    async def get_entry(self, user_id: str, entry_id: str) -> TimeEntry:
        """
        Get a time entry owned by the user.

        Raises:
            NotFoundError: If entry not found
        """
        doc = await self.time_entries.find_one({
            "_id": parse_object_id(entry_id, "entry"),
            "user_id": user_id,
        })
        if not doc:
            raise NotFoundError("Time entry not found")
        return self._doc_to_entry(doc)

    async def list_entries(
        self,
        user_id: str,
        task_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[TimeEntry]:
        """
        List time entries for a user with optional filtering.

        The date range is compared raw, in UTC, against the entry's effective
        instant (start_time, or created_at for duration entries).

        Args:
            user_id: User ID
            task_id: Optional task filter
            start_date: Optional start of range (inclusive)
            end_date: Optional end of range (inclusive)

        Returns:
            List of time entries, most recent first
        """
        # Build query
        clauses = [{"user_id": user_id}]

        if task_id:
            task_id = canonical_id(task_id)
            clauses.append({"$or": [
                {"task_id": task_id},
                {"task_id": None, "project_id": task_id},
            ]})

        if start_date or end_date:
            window = {}
            if start_date:
                window["$gte"] = to_naive_utc(start_date)
            if end_date:
                window["$lte"] = to_naive_utc(end_date)
            clauses.append({"$or": [
                {"start_time": window},
                {"start_time": None, "created_at": window},
            ]})

        query = clauses[0] if len(clauses) == 1 else {"$and": clauses}

        # Execute query
        cursor = self.time_entries.find(query).sort("created_at", -1)
        entry_docs = await cursor.to_list(length=None)

        return [self._doc_to_entry(doc) for doc in entry_docs]

    async def update_entry(
        self,
        user_id: str,
        entry_id: str,
        entry_update: TimeEntryUpdate,
    ) -> TimeEntry:
        """
        Update a time entry.

        Switching to a duration clears both timestamps; editing timestamps
        clears the duration.

        Raises:
            NotFoundError: If entry or new task not found
            ConflictError: If the entry is a running timer
            ValidationError: If the resulting times are inconsistent
        """
        object_id = parse_object_id(entry_id, "entry")

        existing = await self.time_entries.find_one({
            "_id": object_id,
            "user_id": user_id,
        })

        if not existing:
            raise NotFoundError("Time entry not found")

        current = to_span(existing)
        if isinstance(current, Ongoing):
            raise ConflictError("Stop the running timer before editing it")

        # Build update document
        update_doc = {
            "updated_at": self.clock(),
        }

        if entry_update.task_id is not None:
            task = await self._get_task(entry_update.task_id)
            update_doc["task_id"] = str(task["_id"])
        if entry_update.notes is not None:
            update_doc["notes"] = entry_update.notes
        if entry_update.created_at is not None:
            update_doc["created_at"] = to_naive_utc(entry_update.created_at)

        if entry_update.duration_seconds is not None or entry_update.duration:
            if entry_update.duration_seconds is not None:
                seconds = entry_update.duration_seconds
            else:
                seconds = parse_duration(entry_update.duration)
            update_doc.update(span_fields(Manual(seconds=seconds)))
        elif entry_update.start_time is not None or entry_update.end_time is not None:
            start = to_naive_utc(entry_update.start_time) or existing.get("start_time")
            end = to_naive_utc(entry_update.end_time) or existing.get("end_time")
            if isinstance(current, Manual) and (entry_update.start_time is None or entry_update.end_time is None):
                raise ValidationError("Both start and end time are required to convert a duration entry")
            if end <= start:
                raise ValidationError("End time must be after start time")
            update_doc.update(span_fields(Completed(start=start, end=end)))

        # Update in database
        updated_doc = await self.time_entries.find_one_and_update(
            {"_id": object_id, "user_id": user_id},
            {"$set": update_doc},
            return_document=True,
        )

        return self._doc_to_entry(updated_doc)

    async def delete_entry(
        self,
        user_id: str,
        entry_id: str,
    ) -> dict:
        """
        Delete a time entry.

        Returns:
            Dictionary with deleted_count

        Raises:
            NotFoundError: If entry not found
        """
        object_id = parse_object_id(entry_id, "entry")

        existing = await self.time_entries.find_one({
            "_id": object_id,
            "user_id": user_id,
        })

        if not existing:
            raise NotFoundError("Time entry not found")

        # Delete (hard delete for time entries)
        result = await self.time_entries.delete_one({
            "_id": object_id,
            "user_id": user_id,
        })

        return {"deleted_count": result.deleted_count}

    async def normalize_legacy_entries(self, user_id: Optional[str] = None) -> int:
        """
        Rewrite stored entries that carry a manual duration next to timestamps.

        Returns:
            Number of documents repaired
        """
        query = {
            "manual_duration_seconds": {"$ne": None},
            "$or": [{"start_time": {"$ne": None}}, {"end_time": {"$ne": None}}],
        }
        if user_id:
            query["user_id"] = user_id

        docs = await self.time_entries.find(query).to_list(length=None)

        repaired = 0
        for doc in docs:
            fields = normalized_fields(doc)
            if fields is None:
                continue
            await self.time_entries.update_one(
                {"_id": doc["_id"]},
                {"$set": {**fields, "running": False, "updated_at": self.clock()}},
            )
            repaired += 1

        logger.info("Normalized %d legacy time entries", repaired)
        return repaired
