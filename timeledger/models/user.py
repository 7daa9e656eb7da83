"""User model definitions."""
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserRole(str, Enum):
    """User roles."""

    ADMIN = "admin"
    DEVELOPER = "developer"
    USER = "user"


class UserStatus(str, Enum):
    """Account status; only active users receive default task assignments."""

    ACTIVE = "active"
    INACTIVE = "inactive"


PRIVILEGED_ROLES = {UserRole.ADMIN, UserRole.DEVELOPER}


class User(BaseModel):
    """User model (for API responses and role checks)."""

    id: str = Field(alias="_id", serialization_alias="id")
    email: EmailStr
    name: str
    role: UserRole = UserRole.USER
    status: UserStatus = UserStatus.ACTIVE
    pay_rate: Optional[Decimal] = None

    model_config = {"populate_by_name": True}

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES
