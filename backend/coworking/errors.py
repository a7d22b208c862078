"""
Problem documents for every error the API returns.

Shape::

    {"type", "title", "status", "detail", "instance", "code"?, "errors"?}

``instance`` is the request path. ``code`` is a stable machine-readable
string (``BOOKING_CONFLICT``, ``validation_error``). ``errors`` carries
field errors for invalid requests or the domain exception's details.
Malformed requests are 400 rather than FastAPI's default 422.
"""

from http import HTTPStatus
import logging
from typing import Any, Dict, Mapping, NoReturn, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)


def _title(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def problem_response(
    request: Request,
    status_code: int,
    detail: str = "",
    code: Optional[str] = None,
    errors: Any = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "type": "about:blank",
        "title": _title(status_code),
        "status": status_code,
        "detail": detail,
        "instance": request.url.path,
    }
    if code:
        body["code"] = code
    if errors:
        body["errors"] = jsonable_encoder(errors)
    return JSONResponse(body, status_code=status_code, headers=dict(headers) if headers else None)


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Re-raise a service error as the HTTPException the handlers below render."""
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc.message}", extra={"code": exc.code})
    raise exc.to_http_exception()


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Domain errors arrive with a dict detail; framework errors (404, 405) with a string
    detail = exc.detail
    if isinstance(detail, dict):
        message = detail.get("message") or detail.get("detail") or ""
        code = detail.get("code")
        return problem_response(
            request,
            exc.status_code,
            str(message),
            code if isinstance(code, str) else None,
            detail.get("details"),
            exc.headers,
        )
    return problem_response(
        request, exc.status_code, "" if detail is None else str(detail), headers=exc.headers
    )


async def _domain_error(request: Request, exc: DomainException) -> JSONResponse:
    return problem_response(request, exc.status_code, exc.message, exc.code, exc.details)


def _invalid_request(request: Request, errors: Any) -> JSONResponse:
    return problem_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Request validation failed",
        "validation_error",
        errors,
    )


async def _request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _invalid_request(request, exc.errors())


async def _model_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return _invalid_request(request, exc.errors(include_url=False))


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return problem_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "internal_server_error",
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _http_error)  # type: ignore[arg-type]
    app.add_exception_handler(DomainException, _domain_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_error)  # type: ignore
    app.add_exception_handler(ValidationError, _model_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error)
