# ops_core/api_errors.py
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from ops_core.exceptions import Conflict, NotFound, ValidationError

logger = logging.getLogger(__name__)


def ops_exception_handler(exc, context):
    """
    DRF EXCEPTION_HANDLER: domain errors first, everything else falls
    through to the framework default.
    """
    if isinstance(exc, NotFound):
        return Response(
            {"detail": str(exc), "resource": exc.resource},
            status=status.HTTP_404_NOT_FOUND,
        )

    if isinstance(exc, ValidationError):
        return Response(
            {"detail": str(exc), "violations": exc.violations},
            status=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, Conflict):
        logger.info("Conflict: %s", exc)
        return Response(
            {"detail": str(exc), **exc.details},
            status=status.HTTP_409_CONFLICT,
        )

    return exception_handler(exc, context)
