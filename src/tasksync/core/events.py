"""Task change notifications.

Accepted mutations are announced to event sinks after the store write. Sinks
are optional collaborators (a log, a queue publisher, a webhook); a failing
sink never fails or rolls back the mutation that triggered it.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional

logger = logging.getLogger(__name__)


class TaskEventType(Enum):
    """Kinds of task change notification."""

    TASK_CREATED = "TASK_CREATED"
    TASK_UPDATED = "TASK_UPDATED"
    TASK_DELETED = "TASK_DELETED"


@dataclass(frozen=True)
class TaskEvent:
    """A notification about one accepted mutation."""

    type: TaskEventType
    task_id: str
    timestamp: int  # epoch ms
    task: Optional[Dict[str, Any]] = None  # wire form; None for deletions

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


class EventSink(ABC):
    """Receives task events."""

    @abstractmethod
    def publish(self, event: TaskEvent) -> None:
        """Deliver one event."""


class LoggingEventSink(EventSink):
    """Writes every event to the log as a JSON line."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def publish(self, event: TaskEvent) -> None:
        logger.log(self.level, f"Task event: {json.dumps(event.to_dict(), ensure_ascii=False)}")


def publish_event(sinks: Iterable[EventSink], event: TaskEvent) -> None:
    """Deliver an event to every sink, logging (not raising) sink failures."""
    for sink in sinks:
        try:
            sink.publish(event)
        except Exception as e:
            logger.error(
                f"Event sink {type(sink).__name__} failed for "
                f"{event.type.value} {event.task_id}: {e}"
            )
