from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class InternalError(APIException):
    """Store, I/O or collaborator failure surfaced to the caller as a 500."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error."
    default_code = "internal_error"


# PUBLIC_INTERFACE
def api_exception_handler(exc, context):
    """DRF exception handler that maps anything unrecognised to InternalError.

    DRF already renders ValidationError (400), NotAuthenticated (401),
    PermissionDenied (403) and NotFound/Http404 (404); everything else would
    otherwise escape as an HTML 500 page.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.exception("Unhandled error in %s", type(view).__name__ if view else "request", exc_info=exc)
    error = InternalError()
    return Response({"detail": error.detail}, status=error.status_code)
