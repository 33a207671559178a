"""DRF exception handler translating domain errors into HTTP responses."""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import DomainError, StoreConflict

logger = logging.getLogger("crm")


def domain_exception_handler(exc, context):
    """Map service exceptions to 400/503 and defer everything else to DRF."""
    if isinstance(exc, StoreConflict):
        logger.error("Store conflict on %s: %s", _view_name(context), exc)
        return Response(
            {"detail": exc.message, "code": exc.code},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
            headers={"Retry-After": "1"},
        )
    if isinstance(exc, DomainError):
        payload = {"detail": exc.message, "code": exc.code}
        if exc.context:
            payload["context"] = {key: _jsonable(value) for key, value in exc.context.items()}
        return Response(payload, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, DjangoValidationError):
        detail = exc.message_dict if hasattr(exc, "error_dict") else {"detail": exc.messages}
        return Response(detail, status=status.HTTP_400_BAD_REQUEST)
    return exception_handler(exc, context)


def _view_name(context):
    view = context.get("view")
    return type(view).__name__ if view is not None else "unknown view"


def _jsonable(value):
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)
