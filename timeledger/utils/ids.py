"""ObjectId helpers."""
from bson import ObjectId
from bson.errors import InvalidId

from timeledger.errors import ValidationError


def parse_object_id(value: str, label: str = "entity") -> ObjectId:
    """
    Parse a 24-hex id string.

    Raises:
        ValidationError: If the value is not a valid ObjectId
    """
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {label} ID format")


def canonical_id(value):
    """
    Lowercase hex form of an ObjectId string; other values are returned as-is.

    Examples:
        >>> canonical_id("65A5F0C2E4B0A1B2C3D4E5F6")
        '65a5f0c2e4b0a1b2c3d4e5f6'
        >>> canonical_id("42")
        '42'
    """
    if isinstance(value, str) and ObjectId.is_valid(value):
        return str(ObjectId(value))
    return value


def entry_task_id(doc: dict):
    """Task a time entry belongs to; legacy entries stored it as ``project_id``."""
    return canonical_id(doc.get("task_id") or doc.get("project_id"))
