# backend/charterbook/errors.py
"""
RFC 7807 problem+json responses.

Every error the API returns has the same shape::

    {"type": "about:blank", "title": "Conflict", "status": 409,
     "detail": "...", "instance": "/api/v1/bookings/", "code": "BOOKING_CONFLICT",
     "errors": {...}}

``code`` is the stable machine-readable key clients switch on; ``errors``
carries the domain exception's details or pydantic's validation errors.
"""

from http import HTTPStatus
import logging
from typing import Any, Dict, NoReturn, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"


def problem_response(
    request: Request,
    status: int,
    detail: Optional[str] = None,
    code: Optional[str] = None,
    errors: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    try:
        title = HTTPStatus(status).phrase
    except ValueError:
        title = "Error"
    body: Dict[str, Any] = {
        "type": "about:blank",
        "title": title,
        "status": status,
        "detail": detail or "",
        "instance": request.url.path,
    }
    if code:
        body["code"] = code
    if errors:
        body["errors"] = jsonable_encoder(errors)
    return JSONResponse(body, status_code=status, media_type=PROBLEM_MEDIA_TYPE, headers=headers)


def _split_detail(detail: Any) -> Tuple[Optional[str], Optional[str], Any]:
    """Pull message, code and errors out of an ``HTTPException.detail``."""
    if isinstance(detail, dict):
        code = detail.get("code")
        message = detail.get("message") or detail.get("detail")
        return (
            message if isinstance(message, str) else None,
            code if isinstance(code, str) else None,
            detail.get("details") or detail.get("errors"),
        )
    if detail is None:
        return None, None, None
    return str(detail), None, None


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Re-raise a domain error as the HTTP error routes return."""
    raise exc.to_http_exception()


def register_error_handlers(app: FastAPI) -> None:
    # fastapi.HTTPException subclasses the starlette one, so one handler covers both
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail, code, errors = _split_detail(exc.detail)
        return problem_response(
            request,
            exc.status_code,
            detail=detail,
            code=code,
            errors=errors,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        return problem_response(
            request, exc.status_code, detail=exc.message, code=exc.code, errors=exc.details
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return problem_response(
            request,
            422,
            detail="Request validation failed",
            code="REQUEST_VALIDATION",
            errors=exc.errors(),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return problem_response(request, 500, detail="Internal Server Error", code="INTERNAL_ERROR")
