# cm_core/common/api/exceptions.py

from __future__ import annotations

import logging
import uuid
from typing import Any

from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, NotAuthenticated, PermissionDenied, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


def ensure_request_id(request) -> str:
    """Return request.request_id, minting a uuid4 hex id on first use."""
    if request is None:
        return uuid.uuid4().hex
    rid = getattr(request, "request_id", None)
    if not rid:
        rid = uuid.uuid4().hex
        request.request_id = rid
    return rid


def build_error_envelope(*, request=None, code: str, message: str, details: Any = None) -> dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "request_id": ensure_request_id(request),
        }
    }


class WorkflowAPIError(APIException):
    """
    Carries a domain error (status, code, message, structured details) through DRF.

    Details are kept as plain python values so the envelope keeps ints as ints
    (e.g. {"count": 5, "limit": 5}).
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed."
    default_code = "bad_request"

    def __init__(self, *, http_status: int, code: str, message: str, details: dict | None = None):
        super().__init__(detail=message, code=code)
        self.status_code = http_status
        self.default_code = code
        self.message = message
        self.details = details or None


_CODES_BY_TYPE = (
    (ValidationError, "validation_error"),
    (NotAuthenticated, "not_authenticated"),
    (PermissionDenied, "permission_denied"),
    (Http404, "not_found"),
)


def _code_for(exc: Exception) -> str:
    if isinstance(exc, WorkflowAPIError):
        return exc.default_code
    for exc_type, code in _CODES_BY_TYPE:
        if isinstance(exc, exc_type):
            return code
    return getattr(exc, "default_code", None) or "api_error"


def _message_and_details(exc: Exception, data: Any) -> tuple[str, Any]:
    """
    Domain errors carry their own message and details. For DRF errors a
    top-level "detail" becomes the message and the remaining keys the details;
    field errors (serializer validation) go to details whole.
    """
    if isinstance(exc, WorkflowAPIError):
        return exc.message, exc.details
    if isinstance(data, dict) and "detail" in data:
        rest = {k: v for k, v in data.items() if k != "detail"}
        return str(data["detail"]), rest or None
    return "Request failed.", data


def api_exception_handler(exc: Exception, context: dict[str, Any]):
    request = context.get("request")
    response = drf_exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.error(
            "Unhandled API error in %s",
            type(view).__name__ if view is not None else "unknown view",
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return Response(
            build_error_envelope(request=request, code="server_error", message="Unexpected server error."),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    message, details = _message_and_details(exc, response.data)
    return Response(
        build_error_envelope(request=request, code=_code_for(exc), message=message, details=details),
        status=response.status_code,
        headers=response.headers,
    )
