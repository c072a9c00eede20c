# cm_core/cases/exceptions.py
"""
Business-rule outcomes of case operations.

These are expected results, reported to the caller with enough detail to
render a message; they are not logged as errors. The API layer maps them onto
HTTP statuses via ``http_status`` / ``code``.
"""
from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    http_status = 400
    code = "bad_request"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message


class NotFound(WorkflowError):
    http_status = 404
    code = "not_found"


class Forbidden(WorkflowError):
    http_status = 403
    code = "forbidden"


class InvalidTransition(WorkflowError):
    code = "invalid_transition"

    def __init__(self, *, current_status: str, action: str):
        super().__init__(
            f"Cannot {action} a case in status {current_status}.",
            current_status=str(current_status),
            action=str(action),
        )
        self.current_status = str(current_status)
        self.action = str(action)


class WorkloadExceeded(WorkflowError):
    code = "workload_exceeded"

    def __init__(self, *, user_id, count: int, limit: int):
        super().__init__(
            f"Caseworker {user_id} already has {count} active cases (limit {limit}).",
            user_id=user_id,
            count=count,
            limit=limit,
        )
        self.count = count
        self.limit = limit


class InvalidAssignee(WorkflowError):
    code = "invalid_assignee"


class InvalidInput(WorkflowError):
    code = "validation_error"


class Conflict(WorkflowError):
    """Concurrent modification that survived the internal retry. Safe to retry."""
    http_status = 409
    code = "conflict"
