"""Error taxonomy shared by every module and its HTTP rendering.

Domain modules subclass one of the five kinds below.  The Service Layer
raises them; the API layer never builds error responses by hand:
``api_exception_handler`` (registered as DRF's ``EXCEPTION_HANDLER``)
translates them into a single response shape::

    {"message": "...", "type": "conflict_error",
     "errors": [{"code": "insufficient_stock", "detail": "...", "attr": null}]}

``DependencyError`` is never rendered: failures of notification or invoice
collaborators are logged after commit and never reach the caller.
"""

from __future__ import annotations

from typing import Any

import structlog
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = structlog.get_logger(__name__)


class DomainError(Exception):
    """Base class for every error the order core reports to callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_type: str = "domain_error"
    code: str = "error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self.args[0])


class ValidationError(DomainError):
    """Malformed or missing required input."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "validation_error"
    code = "invalid"


class NotFoundError(DomainError):
    """The requested order, product or customer does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found_error"
    code = "not_found"


class ConflictError(DomainError):
    """The request is well-formed but conflicts with current state."""

    status_code = status.HTTP_409_CONFLICT
    error_type = "conflict_error"
    code = "conflict"


class AuthorizationError(DomainError):
    """The actor may not act on the requested customer or order."""

    status_code = status.HTTP_403_FORBIDDEN
    error_type = "authorization_error"
    code = "permission_denied"


class DependencyError(DomainError):
    """An external collaborator (mail transport, renderer) failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_type = "dependency_error"
    code = "dependency_failed"


# ---------------------------------------------------------------------------
# DRF integration
# ---------------------------------------------------------------------------

_DRF_ERROR_TYPES: dict[type[drf_exceptions.APIException], str] = {
    drf_exceptions.ValidationError: "validation_error",
    drf_exceptions.ParseError: "validation_error",
    drf_exceptions.NotAuthenticated: "client_error",
    drf_exceptions.AuthenticationFailed: "client_error",
    drf_exceptions.PermissionDenied: "authorization_error",
    drf_exceptions.NotFound: "not_found_error",
    drf_exceptions.MethodNotAllowed: "client_error",
    drf_exceptions.Throttled: "client_error",
}


def _flatten_detail(detail: Any, attr: str | None = None) -> list[dict[str, Any]]:
    """Flatten DRF's nested ``ErrorDetail`` structures into a flat list."""
    if isinstance(detail, dict):
        errors: list[dict[str, Any]] = []
        for key, value in detail.items():
            nested = key if attr is None else f"{attr}.{key}"
            if key == "non_field_errors":
                nested = attr
            errors.extend(_flatten_detail(value, nested))
        return errors
    if isinstance(detail, list):
        errors = []
        for index, value in enumerate(detail):
            nested = attr
            if isinstance(value, (dict, list)) and attr is not None:
                nested = f"{attr}.{index}"
            errors.extend(_flatten_detail(value, nested))
        return errors
    return [
        {
            "code": getattr(detail, "code", "error"),
            "detail": str(detail),
            "attr": attr,
        }
    ]


def _drf_error_type(exc: Exception, status_code: int) -> str:
    for exc_class, error_type in _DRF_ERROR_TYPES.items():
        if isinstance(exc, exc_class):
            return error_type
    if status_code == status.HTTP_404_NOT_FOUND:
        return "not_found_error"
    if status_code == status.HTTP_403_FORBIDDEN:
        return "authorization_error"
    return "server_error" if status_code >= 500 else "client_error"


def api_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """Render domain and DRF errors with the standard error shape."""
    if isinstance(exc, DomainError):
        view = context.get("view")
        logger.info(
            "api.domain_error",
            error_type=exc.error_type,
            code=exc.code,
            status_code=exc.status_code,
            view=view.__class__.__name__ if view is not None else None,
        )
        return Response(
            {
                "message": exc.message,
                "type": exc.error_type,
                "errors": [{"code": exc.code, "detail": exc.message, "attr": None}],
            },
            status=exc.status_code,
        )

    response = drf_exception_handler(exc, context)
    if response is None:
        return None

    # Django's Http404 / PermissionDenied carry no ``detail``; DRF already
    # converted them into ``{"detail": ...}`` on the response.
    detail = getattr(exc, "detail", response.data)
    if isinstance(detail, dict) and set(detail) == {"detail"}:
        detail = detail["detail"]

    errors = _flatten_detail(detail)
    response.data = {
        "message": errors[0]["detail"] if errors else str(exc),
        "type": _drf_error_type(exc, response.status_code),
        "errors": errors,
    }
    return response
