"""
Translation of domain errors into DRF responses.

Views catch ``DomainError`` and return ``domain_error_response(exc)`` so
every endpoint answers with the same ``{"detail", "code"}`` body.
"""

from __future__ import annotations

import logging

from rest_framework import status  # type: ignore
from rest_framework.response import Response  # type: ignore

from shared.domain.exceptions import DomainError, NotFound

logger = logging.getLogger(__name__)

# Matched by class name to keep this module free of app imports.
_STATUS_BY_ERROR = {
    "AdmissionConflict": status.HTTP_409_CONFLICT,
    "TransitionForbidden": status.HTTP_403_FORBIDDEN,
}


def domain_error_response(exc: DomainError) -> Response:
    http_status = status.HTTP_400_BAD_REQUEST
    if isinstance(exc, NotFound):
        http_status = status.HTTP_404_NOT_FOUND
    for klass in type(exc).__mro__:
        if klass.__name__ in _STATUS_BY_ERROR:
            http_status = _STATUS_BY_ERROR[klass.__name__]
            break

    body = {"detail": exc.message, "code": exc.code}
    reason = getattr(exc, "reason", None)
    if reason:
        body["reason"] = reason
    logger.info(f"{type(exc).__name__}: {exc.message}")
    return Response(body, status=http_status)
