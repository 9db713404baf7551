"""Input validation for TaskSync.

Client payloads arrive as untyped dicts. This module parses them once, at the
boundary, into typed inputs for the mutation engine. Coercion helpers are
tolerant (boolean-like strings, numeric strings); parse_* functions return a
ParseResult holding either the parsed value or a ValidationError.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar, Union

from .models import DEFAULT_PRIORITY, DEFAULT_USER_ID, OperationType
from .timestamp_utils import MAX_TIMESTAMP_MS

__all__ = [
    "ValidationError",
    "ParseResult",
    "CreateInput",
    "UpdatePatch",
    "parse_boolean",
    "parse_number",
    "parse_create_input",
    "parse_update_patch",
    "normalize_operation_type",
    "validate_task_id",
]

T = TypeVar("T")

_TRUE_VALUES = {"1", "true"}
_FALSE_VALUES = {"0", "false"}


class ValidationError(ValueError):
    """Validation error with field and message attributes."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"

    def __repr__(self) -> str:
        return f"ValidationError(field='{self.field}', message='{self.message}')"


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    """Outcome of parsing a payload: exactly one of value or error is set."""

    value: Optional[T] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the parsed value, raising the ValidationError on failure."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T) -> "ParseResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, field: str, message: str) -> "ParseResult[T]":
        return cls(error=ValidationError(field, message))


@dataclass(frozen=True)
class CreateInput:
    """Normalized fields for a create mutation."""

    title: str
    description: str = ""
    completed: bool = False
    priority: str = DEFAULT_PRIORITY
    user_id: str = DEFAULT_USER_ID
    id: Optional[str] = None
    created_at: Optional[int] = None


@dataclass(frozen=True)
class UpdatePatch:
    """Fields supplied by an update. None means "keep the stored value"."""

    title: Optional[str] = None
    description: Optional[str] = None
    completed: Optional[bool] = None
    priority: Optional[str] = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.title, self.description, self.completed, self.priority)
        )


def parse_boolean(value: Any, fallback: Optional[bool] = False) -> Optional[bool]:
    """Coerce a boolean-like value.

    Accepts booleans, 1/0, "1"/"0" and "true"/"false" (any case).
    Anything else yields the fallback.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
        return fallback
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    return fallback


def parse_number(value: Any) -> Optional[Union[int, float]]:
    """Coerce a number or numeric string; None when absent or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number: Union[int, float] = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            number = float(stripped)
        except ValueError:
            return None
    else:
        return None

    if isinstance(number, float):
        if math.isnan(number) or math.isinf(number):
            return None
        if number.is_integer():
            return int(number)
    return number


def _optional_text(value: Any) -> Optional[str]:
    """Return a non-empty string form of an identifier-like value."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int)):
        text = str(value).strip()
        return text or None
    return None


def parse_create_input(
    payload: Any,
    fallback_title: Optional[str] = None,
    default_user_id: str = DEFAULT_USER_ID,
) -> ParseResult[CreateInput]:
    """Parse a create payload.

    Args:
        payload: Raw payload dict from the client
        fallback_title: Title to use when none is supplied. When None, a
            missing or blank title is a validation failure.
        default_user_id: Owner for payloads without userId/user_id

    Returns:
        ParseResult holding a CreateInput
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return ParseResult.failure("payload", f"must be an object, got {type(payload).__name__}")

    raw_title = payload.get("title")
    title = raw_title.strip() if isinstance(raw_title, str) else ""
    if not title:
        if fallback_title is None:
            return ParseResult.failure("title", "is required")
        title = fallback_title

    description = payload.get("description")
    priority = payload.get("priority")
    user_id = _optional_text(payload.get("userId")) or _optional_text(payload.get("user_id"))

    created_at = parse_number(payload.get("createdAt"))
    if created_at is not None and not 0 < created_at <= MAX_TIMESTAMP_MS:
        created_at = None

    return ParseResult.success(CreateInput(
        id=_optional_text(payload.get("id")),
        title=title,
        description=description if isinstance(description, str) else "",
        completed=bool(parse_boolean(payload.get("completed"), False)),
        priority=priority if isinstance(priority, str) and priority.strip() else DEFAULT_PRIORITY,
        user_id=user_id or default_user_id,
        created_at=int(created_at) if created_at is not None else None,
    ))


def parse_update_patch(payload: Any) -> ParseResult[UpdatePatch]:
    """Parse an update payload into an UpdatePatch.

    Fields that are absent or of the wrong type are left as None so the
    stored value is kept. A title that is blank after trimming is ignored.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return ParseResult.failure("payload", f"must be an object, got {type(payload).__name__}")

    raw_title = payload.get("title")
    title = raw_title.strip() if isinstance(raw_title, str) else None
    description = payload.get("description")
    priority = payload.get("priority")

    completed = parse_boolean(payload.get("completed"), fallback=None)

    return ParseResult.success(UpdatePatch(
        title=title or None,
        description=description if isinstance(description, str) else None,
        completed=completed,
        priority=priority if isinstance(priority, str) and priority.strip() else None,
    ))


def normalize_operation_type(kind: Any) -> Optional[OperationType]:
    """Map an operation kind string to an OperationType.

    Kinds may carry a namespace prefix ("OperationType.create"), which is
    stripped before matching. Returns None for unknown kinds.
    """
    if not isinstance(kind, str):
        return None
    name = kind.rsplit(".", 1)[-1].strip().lower()
    try:
        return OperationType(name)
    except ValueError:
        return None


def validate_task_id(value: Any, field_name: str = "taskId") -> str:
    """Validate a task identifier (non-empty string)."""
    task_id = _optional_text(value)
    if task_id is None:
        raise ValidationError(field_name, "must be a non-empty string")
    return task_id
