"""
Problem-details error bodies for the booking API.

Routes convert ``DomainException`` to ``HTTPException`` themselves; the
handlers here shape whatever reaches the app into one envelope:

    {"type", "title", "status", "detail", "instance", "code"?, "errors"?}

A ``DomainException`` that escapes a route (for example from a dependency)
is rendered the same way instead of surfacing as a bare 500.
"""

from http import HTTPStatus
import logging
from typing import Any, Dict, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)

VALIDATION_ERROR_CODE = "validation_error"


def _title(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def problem_response(
    request: Request,
    status_code: int,
    *,
    detail: Optional[Any] = None,
    code: Optional[str] = None,
    errors: Optional[Any] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "type": "about:blank",
        "title": _title(status_code),
        "status": status_code,
        "detail": detail or "",
        "instance": request.url.path,
    }
    if code:
        body["code"] = code
    if errors:
        body["errors"] = jsonable_encoder(errors)
    return JSONResponse(body, status_code=status_code, headers=dict(headers) if headers else None)


def _unpack_http_detail(detail: Any) -> tuple[Optional[Any], Optional[str], Optional[Any]]:
    """Split ``DomainException.to_http_exception()`` detail back into its parts."""
    if isinstance(detail, dict):
        code = detail.get("code")
        return (
            detail.get("message"),
            code if isinstance(code, str) else None,
            detail.get("details"),
        )
    return detail, None, None


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        message, code, errors = _unpack_http_detail(exc.detail)
        return problem_response(
            request,
            exc.status_code,
            detail=message,
            code=code,
            errors=errors,
            headers=exc.headers,
        )

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                f"Unhandled {exc.code} on {request.url.path}: {exc.message}",
                extra={"code": exc.code, "details": exc.details},
            )
        return problem_response(
            request,
            exc.status_code,
            detail=exc.message,
            code=exc.code,
            errors=exc.details,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        return problem_response(
            request, 422, detail=errors, code=VALIDATION_ERROR_CODE, errors=errors
        )

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        # Raised when query parameters pass FastAPI but fail BookingListFilters
        errors = jsonable_encoder(exc.errors(include_context=False))
        return problem_response(
            request, 422, detail=errors, code=VALIDATION_ERROR_CODE, errors=errors
        )
