"""
Custom error handlers for the API.
"""

import logging

from django.db.models import ProtectedError
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from trading.exceptions import TradingError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """
    Render trading errors as ``{"error": code, "message": ..., **context}``.

    Anything else falls through to DRF's default handler.
    """
    if isinstance(exc, TradingError):
        if exc.status_code >= 500:
            logger.error("Internal error in %s: %s", context.get("view"), exc, exc_info=exc)
        body = {"error": exc.code, "message": exc.message}
        body.update({key: _jsonable(value) for key, value in exc.context.items()})
        return Response(body, status=exc.status_code)

    if isinstance(exc, ProtectedError):
        return Response(
            {
                "error": "invalid_state",
                "message": "The record is referenced by other records and cannot be deleted.",
            },
            status=status.HTTP_409_CONFLICT,
        )

    return exception_handler(exc, context)


def _jsonable(value):
    if isinstance(value, (str, int, bool)) or value is None:
        return value
    return str(value)


def handler404(request, exception=None):
    """
    Custom 404 handler that returns JSON for API requests.
    """
    return JsonResponse(
        {
            "error": "Not Found",
            "message": "The requested resource was not found.",
            "path": request.path,
        },
        status=404,
    )


def handler500(request):
    """
    Custom 500 handler that returns JSON for API requests.
    """
    return JsonResponse(
        {
            "error": "Internal Server Error",
            "message": "An unexpected error occurred. Please try again later.",
        },
        status=500,
    )
