"""Batch synchronization for TaskSync.

An offline client queues mutations locally and submits them in one batch when
it reconnects. Each operation is applied through the MutationEngine, strictly
in submitted order, and gets its own outcome:

- A failing operation never aborts or rolls back the others.
- The result list is index-aligned with the input and every entry carries the
  client's correlation id, so the client can reconcile its local queue.
- Conflicts carry the current server copy so the client can rebase.

Operation format:
    {
        "id": "<client correlation id>",
        "type": "create" | "update" | "delete" (optionally namespaced,
                e.g. "OperationType.update"),
        "taskId": "<target task id>",   # update/delete
        "data": {...}                   # payload; "version" for update/delete
    }

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .errors import ConflictError, NotFoundError
from .models import UNTITLED, OperationType, Task
from .mutations import MutationEngine
from .validation import (
    ValidationError,
    normalize_operation_type,
    parse_number,
    validate_task_id,
)

logger = logging.getLogger(__name__)

INVALID_OPERATION_TYPE = "invalid operation type"


@dataclass
class SyncOperation:
    """One queued client mutation."""

    id: Any  # client correlation id, echoed back untouched
    type: Any  # raw kind as submitted
    task_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any) -> "SyncOperation":
        """Build an operation from a raw dict. Never raises.

        Malformed entries become operations with an unknown type so they are
        reported in their result slot instead of failing the batch.
        """
        if not isinstance(raw, dict):
            return cls(id=None, type=None)
        task_id = raw.get("taskId", raw.get("task_id"))
        if isinstance(task_id, bool) or not isinstance(task_id, (str, int)):
            task_id = None
        data = raw.get("data")
        return cls(
            id=raw.get("id"),
            type=raw.get("type"),
            task_id=str(task_id) if task_id is not None else None,
            data=data if isinstance(data, dict) else {},
        )

    @property
    def kind(self) -> Optional[OperationType]:
        return normalize_operation_type(self.type)


@dataclass
class OperationResult:
    """Outcome of one operation in a batch."""

    id: Any
    success: bool
    task: Optional[Task] = None
    message: Optional[str] = None
    conflict: bool = False
    server_task: Optional[Task] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"id": self.id, "success": self.success}
        if self.task is not None:
            result["task"] = self.task.to_dict()
        if self.message is not None:
            result["message"] = self.message
        if self.conflict:
            result["conflict"] = True
            result["serverTask"] = self.server_task.to_dict() if self.server_task else None
        return result


@dataclass
class SyncSummary:
    """Counts of batch outcomes, for logging and status reporting."""

    applied: int = 0
    conflicts: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.applied + self.conflicts + self.failed


def apply_sync_operations(
    engine: MutationEngine,
    operations: Iterable[Any],
) -> List[OperationResult]:
    """Apply a batch of operations in submitted order.

    Args:
        engine: Mutation engine to apply operations through
        operations: SyncOperation instances or raw operation dicts

    Returns:
        One OperationResult per input operation, in input order
    """
    results: List[OperationResult] = []
    for raw in operations:
        operation = raw if isinstance(raw, SyncOperation) else SyncOperation.from_dict(raw)
        results.append(apply_sync_operation(engine, operation))

    summary = summarize_results(results)
    if summary.conflicts or summary.failed:
        logger.warning(
            f"Batch sync: {summary.applied} applied, {summary.conflicts} conflicts, "
            f"{summary.failed} failed"
        )
    else:
        logger.info(f"Batch sync: {summary.applied} applied")
    return results


def apply_sync_operation(engine: MutationEngine, operation: SyncOperation) -> OperationResult:
    """Apply one operation, converting every failure into a result entry."""
    kind = operation.kind
    if kind is None:
        logger.warning(f"Rejected operation {operation.id!r}: unknown type {operation.type!r}")
        return OperationResult(id=operation.id, success=False, message=INVALID_OPERATION_TYPE)

    try:
        if kind is OperationType.CREATE:
            return _apply_create(engine, operation)
        elif kind is OperationType.UPDATE:
            return _apply_update(engine, operation)
        else:
            return _apply_delete(engine, operation)
    except ConflictError as e:
        return OperationResult(
            id=operation.id,
            success=False,
            message=e.message,
            conflict=True,
            server_task=e.server_task,
        )
    except ValidationError as e:
        return OperationResult(
            id=operation.id, success=False, message=f"Invalid {e.field}: {e.message}"
        )
    except NotFoundError as e:
        return OperationResult(id=operation.id, success=False, message=str(e))
    except Exception as e:
        logger.error(f"Error applying {kind.value} operation {operation.id!r}: {e}")
        return OperationResult(
            id=operation.id,
            success=False,
            message=str(e) or "Error processing operation",
        )


def _apply_create(engine: MutationEngine, operation: SyncOperation) -> OperationResult:
    payload = dict(operation.data)
    if not payload.get("id") and operation.task_id:
        payload["id"] = operation.task_id
    task = engine.create(payload, fallback_title=UNTITLED)
    return OperationResult(id=operation.id, success=True, task=task)


def _apply_update(engine: MutationEngine, operation: SyncOperation) -> OperationResult:
    task_id = validate_task_id(operation.task_id)
    task = engine.update(task_id, parse_number(operation.data.get("version")), operation.data)
    return OperationResult(id=operation.id, success=True, task=task)


def _apply_delete(engine: MutationEngine, operation: SyncOperation) -> OperationResult:
    task_id = validate_task_id(operation.task_id)
    engine.delete(task_id, parse_number(operation.data.get("version")))
    return OperationResult(id=operation.id, success=True)


def summarize_results(results: Iterable[OperationResult]) -> SyncSummary:
    """Count applied, conflicting and failed operations."""
    summary = SyncSummary()
    for result in results:
        if result.success:
            summary.applied += 1
        elif result.conflict:
            summary.conflicts += 1
        else:
            summary.failed += 1
    return summary
