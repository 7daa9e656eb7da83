"""Subtask model definitions."""
from typing import Optional

from pydantic import BaseModel, Field


class Subtask(BaseModel):
    """A subtask with its assignees stored as user ids."""

    id: str = Field(alias="_id", serialization_alias="id")
    task_id: str
    title: str
    assignee_ids: list[str] = []
    discussion_id: Optional[str] = None

    model_config = {"populate_by_name": True}


class LegacySubtask(BaseModel):
    """One element of the serialized ``subtask_data`` blob."""

    title: str = ""
    assignees: list[str] = []

    model_config = {"extra": "allow"}
