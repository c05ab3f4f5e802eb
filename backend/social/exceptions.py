"""
Custom Exception Handler for DRF

Every error leaves the API as {"error": <kind>, "message": ...} plus the
offending field or conflict code where there is one, so clients can branch
on `error` without parsing messages.
"""
import logging

from django.db import IntegrityError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .errors import FeedError

logger = logging.getLogger(__name__)


def custom_exception_handler(exc, context):
    """
    1. Domain errors (FeedError) -> their own status and body
    2. DRF errors -> DRF's status, body normalized
    3. IntegrityError that slipped past a service -> 409
    4. Anything else -> logged with traceback, generic 500
    """
    if isinstance(exc, FeedError):
        return Response(exc.as_dict(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        if not isinstance(response.data, dict) or 'error' not in response.data:
            response.data = {
                'error': getattr(exc, 'default_code', 'error'),
                'message': str(getattr(exc, 'detail', exc)),
                'details': response.data,
            }
        return response

    if isinstance(exc, IntegrityError):
        logger.warning("IntegrityError: %s", exc)
        return Response(
            {'error': 'conflict', 'message': 'Data integrity error. This may be a duplicate entry.'},
            status=status.HTTP_409_CONFLICT
        )

    logger.exception("Unhandled exception: %s", exc)
    return Response(
        {'error': 'error', 'message': 'An unexpected error occurred.'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
