"""Data models for TaskSync.

This module defines the immutable Task dataclass, the only entity the sync
engine manages, together with the defaults applied during normalization.

Task IDs are opaque strings; server-assigned IDs are UUID7 hex strings.
All timestamps are epoch milliseconds.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict

DEFAULT_PRIORITY = "medium"
DEFAULT_USER_ID = "user1"
UNTITLED = "untitled"

# Python attribute name -> wire (JSON) key
_WIRE_KEYS = {
    "id": "id",
    "title": "title",
    "description": "description",
    "completed": "completed",
    "priority": "priority",
    "user_id": "userId",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "version": "version",
}


class OperationType(Enum):
    """Kinds of mutation a sync client may submit."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Task:
    """Represents a versioned task record.

    Attributes:
        id: Unique identifier, immutable once assigned
        title: Non-empty title
        description: Free text (may be empty)
        completed: Whether the task is done
        priority: Free-form priority label
        user_id: Owner identifier
        created_at: Creation time (epoch ms), fixed at creation
        updated_at: Time of the last accepted mutation (epoch ms)
        version: Starts at 1, incremented by exactly 1 per accepted update
    """

    id: str
    title: str
    description: str
    completed: bool
    priority: str
    user_id: str
    created_at: int
    updated_at: int
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase wire form."""
        return {_WIRE_KEYS[key]: value for key, value in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Build a Task from its wire form.

        Used for trusted data (store rows, server responses); client payloads
        go through the validation module instead.
        """
        return cls(
            id=str(data["id"]),
            title=data["title"],
            description=data.get("description", ""),
            completed=bool(data.get("completed", False)),
            priority=data.get("priority", DEFAULT_PRIORITY),
            user_id=data.get("userId", DEFAULT_USER_ID),
            created_at=int(data["createdAt"]),
            updated_at=int(data["updatedAt"]),
            version=int(data.get("version", 1)),
        )
