"""
Exception handlers that render every failure into the error envelope.

요청 ID 를 envelope 과 로그에 함께 남겨 webhook 호출자와 브라우저 클라이언트가
서버 로그와 대조할 수 있게 한다.
"""

import logging
from typing import Any, Dict, List

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...core.config import settings
from ...core.logging_config import get_request_id, new_request_id
from ..responses import ErrorDetail, HTTPStatusCodes, error_response, validation_error_response
from .custom_exceptions import BaseAPIException

logger = logging.getLogger(__name__)

# 키 material 이나 시크릿은 검증 에러에 되돌려주지 않음
_REDACTED_FIELDS = ("secret", "token", "auth", "p256dh", "private")
_MAX_ECHO_LENGTH = 100

_STATUS_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    503: "SERVICE_UNAVAILABLE",
}


def _envelope_fields(request: Request) -> Dict[str, Any]:
    return {
        "request_id": get_request_id() or new_request_id(),
        "path": request.url.path,
        "method": request.method,
    }


def _echo_value(field_path: str, value: Any) -> Any:
    if value is None:
        return None
    if any(name in field_path.lower() for name in _REDACTED_FIELDS):
        return "[REDACTED]"
    text = str(value)
    return text[:_MAX_ECHO_LENGTH] + "..." if len(text) > _MAX_ECHO_LENGTH else value


def _validation_details(exc: RequestValidationError) -> List[Dict[str, Any]]:
    details = []
    for error in exc.errors():
        # loc[0] 은 항상 "body" / "query" 등 위치 표시
        field_path = ".".join(str(part) for part in error["loc"][1:]) or "unknown"
        details.append({
            "code": "VALIDATION_ERROR",
            "message": error["msg"],
            "field": field_path,
            "context": {"type": error["type"], "value": _echo_value(field_path, error.get("input"))},
        })
    return details


async def base_api_exception_handler(request: Request, exc: BaseAPIException) -> JSONResponse:
    envelope = _envelope_fields(request)
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        "%s %s -> %s %s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.error_code,
        extra={"status_code": exc.status_code, "error_code": exc.error_code, "context": exc.context},
    )

    return error_response(
        errors=exc.errors or [exc.to_error_detail()],
        message=exc.detail,
        status_code=exc.status_code,
        headers=exc.headers,
        error_type=exc.error_code,
        **envelope
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Plain HTTPException (router 404/405 등)을 envelope 으로 변환"""
    envelope = _envelope_fields(request)
    error_code = _STATUS_ERROR_CODES.get(exc.status_code, f"HTTP_{exc.status_code}")
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"
    logger.warning(
        "%s %s -> %s", request.method, request.url.path, exc.status_code,
        extra={"status_code": exc.status_code},
    )

    return error_response(
        errors=[ErrorDetail(code=error_code, message=message)],
        message=message,
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
        error_type=error_code,
        **envelope
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    envelope = _envelope_fields(request)
    details = _validation_details(exc)
    logger.warning(
        "Validation failed on %s: %s",
        request.url.path,
        ", ".join(detail["field"] for detail in details),
    )

    return validation_error_response(
        errors=details,
        message=f"Validation failed for {len(details)} field(s)",
        **envelope
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort. 내부 정보는 debug 모드에서만 노출"""
    envelope = _envelope_fields(request)
    logger.exception("Unhandled %s on %s", type(exc).__name__, request.url.path)

    detail = ErrorDetail(code="INTERNAL_SERVER_ERROR", message="An unexpected error occurred")
    if settings.debug:
        detail.message = f"{type(exc).__name__}: {str(exc)[:200]}"

    return error_response(
        errors=[detail],
        message="Internal server error",
        status_code=HTTPStatusCodes.INTERNAL_SERVER_ERROR,
        error_type="INTERNAL_SERVER_ERROR",
        **envelope
    )


__all__ = [
    "base_api_exception_handler",
    "http_exception_handler",
    "validation_exception_handler",
    "general_exception_handler",
]
