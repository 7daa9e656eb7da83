"""Tests for Pydantic models."""
import pytest
from datetime import date, datetime
from decimal import Decimal
from pydantic import TypeAdapter, ValidationError


class TestEntrySpan:
    """Tests for the tagged duration union."""

    def test_span_discriminator(self):
        """Test spans are told apart by their kind."""
        from timeledger.models.time_entry import Completed, EntrySpan, Manual, Ongoing

        adapter = TypeAdapter(EntrySpan)

        assert isinstance(adapter.validate_python({"kind": "manual", "seconds": 60}), Manual)
        assert isinstance(adapter.validate_python({"kind": "ongoing", "start": "2024-01-15T09:00:00"}), Ongoing)
        assert isinstance(
            adapter.validate_python({
                "kind": "completed",
                "start": "2024-01-15T09:00:00",
                "end": "2024-01-15T10:00:00",
            }),
            Completed,
        )

    def test_span_unknown_kind(self):
        """Test an unknown kind is rejected."""
        from timeledger.models.time_entry import EntrySpan

        with pytest.raises(ValidationError):
            TypeAdapter(EntrySpan).validate_python({"kind": "paused", "seconds": 60})

    def test_manual_seconds_non_negative(self):
        """Test manual durations cannot be negative."""
        from timeledger.models.time_entry import Manual

        with pytest.raises(ValidationError):
            Manual(seconds=-1)


class TestTimeEntryModels:
    """Tests for time entry request and response models."""

    def test_time_entry_create_minimal(self):
        """Test creating an entry request with a duration only."""
        from timeledger.models.time_entry import TimeEntryCreate

        entry = TimeEntryCreate(task_id="task123", duration="2h")

        assert entry.duration == "2h"
        assert entry.start_time is None
        assert entry.tz_offset_minutes is None

    def test_time_entry_create_hours_range(self):
        """Test component hours must be on the clock face."""
        from timeledger.models.time_entry import TimeEntryCreate

        with pytest.raises(ValidationError):
            TimeEntryCreate(task_id="task123", task_date=date(2024, 1, 15), start_hours=24)

    def test_time_entry_serializes_id(self):
        """Test the Mongo _id is exposed as id."""
        from timeledger.models.time_entry import TimeEntry

        now = datetime(2024, 1, 15, 9, 0)
        entry = TimeEntry(
            _id="abc123",
            user_id="user123",
            task_id="task123",
            manual_duration_seconds=600,
            duration_seconds=600,
            created_at=now,
            updated_at=now,
        )

        data = entry.model_dump(by_alias=True)
        assert data["id"] == "abc123"
        assert data["duration_seconds"] == 600


class TestUserModel:
    """Tests for User model."""

    def test_user_defaults(self):
        """Test role and status defaults."""
        from timeledger.models.user import User, UserRole, UserStatus

        user = User(_id="user123", email="bob@example.com", name="Bob")

        assert user.role == UserRole.USER
        assert user.status == UserStatus.ACTIVE
        assert user.is_privileged is False
        assert user.is_admin is False

    def test_user_roles(self):
        """Test admins and developers are privileged, only admins are admins."""
        from timeledger.models.user import User

        admin = User(_id="1", email="a@example.com", name="A", role="admin")
        developer = User(_id="2", email="d@example.com", name="D", role="developer")

        assert admin.is_admin and admin.is_privileged
        assert developer.is_privileged and not developer.is_admin

    def test_user_pay_rate_decimal(self):
        """Test pay rates keep their cents exactly."""
        from timeledger.models.user import User

        user = User(_id="1", email="a@example.com", name="A", pay_rate="33.33")

        assert user.pay_rate == Decimal("33.33")

    def test_user_invalid_email(self):
        """Test that invalid email is rejected."""
        from timeledger.models.user import User

        with pytest.raises(ValidationError):
            User(_id="1", email="not-an-email", name="A")


class TestTaskModels:
    """Tests for task models."""

    def test_task_status_values(self):
        """Test TaskStatus enum has correct values."""
        from timeledger.models.task import TaskStatus

        assert TaskStatus.PENDING.value == "pending"
        assert TaskStatus.IN_PROGRESS.value == "in-progress"
        assert TaskStatus.COMPLETED.value == "completed"

    def test_task_status_update_rejects_unknown(self):
        """Test unknown statuses are rejected."""
        from timeledger.models.task import TaskStatusUpdate

        with pytest.raises(ValidationError):
            TaskStatusUpdate(status="blocked")


class TestReportModels:
    """Tests for report models."""

    def test_day_total_range(self):
        """Test day of week must be 0-6."""
        from timeledger.models.report import DayTotal

        assert DayTotal(day_of_week=0).formatted == "0h 0m"
        with pytest.raises(ValidationError):
            DayTotal(day_of_week=7)
