from __future__ import annotations

import logging
import re
import time

from django.utils.deprecation import MiddlewareMixin

from cm_core.common.api.exceptions import ensure_request_id
from cm_core.common.log import reset_request_id, set_request_id

logger = logging.getLogger(__name__)

_VALID_INCOMING_ID = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


class RequestIdMiddleware(MiddlewareMixin):
    """
    Gives every request a stable id:
      - honours a well-formed incoming X-Request-Id header
      - otherwise generates one (same helper the error envelope uses)
      - binds it to the logging context for the duration of the request
      - echoes it back as X-Request-Id
    """

    HEADER = "HTTP_X_REQUEST_ID"

    def process_request(self, request):
        incoming = request.META.get(self.HEADER)
        if incoming and _VALID_INCOMING_ID.match(incoming):
            request.request_id = incoming
        rid = ensure_request_id(request)

        request._log_token = set_request_id(rid)
        request._started_at = time.monotonic()
        return None

    def process_response(self, request, response):
        rid = getattr(request, "request_id", None)
        if rid:
            response["X-Request-Id"] = rid

        started = getattr(request, "_started_at", None)
        if started is not None and request.path.startswith("/api/"):
            logger.info(
                "%s %s -> %s",
                request.method,
                request.path,
                response.status_code,
                extra={"duration_ms": round((time.monotonic() - started) * 1000, 1)},
            )

        token = getattr(request, "_log_token", None)
        if token is not None:
            reset_request_id(token)
            request._log_token = None
        return response
