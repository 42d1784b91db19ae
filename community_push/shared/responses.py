"""
Response envelopes shared by every route.

성공: {success, data, message, timestamp}
실패: {success=false, errors[], message, timestamp, request_id, error_type, path, method}

content backend 와 브라우저 클라이언트는 error_type 으로 실패 종류를 구분한다.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class HTTPStatusCodes:
    """Status codes this service actually returns"""

    OK = status.HTTP_200_OK
    CREATED = status.HTTP_201_CREATED
    BAD_REQUEST = status.HTTP_400_BAD_REQUEST
    UNAUTHORIZED = status.HTTP_401_UNAUTHORIZED
    UNPROCESSABLE_ENTITY = status.HTTP_422_UNPROCESSABLE_ENTITY
    INTERNAL_SERVER_ERROR = status.HTTP_500_INTERNAL_SERVER_ERROR
    SERVICE_UNAVAILABLE = status.HTTP_503_SERVICE_UNAVAILABLE


class SuccessEnvelope(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "data": {"total": 3, "succeeded": 2, "failed": 1, "evicted": 1},
                "message": "Push notifications sent",
                "timestamp": "2024-01-25T12:00:00.000000Z",
            }
        }
    )

    success: bool = True
    data: Optional[Any] = None
    message: Optional[str] = None
    timestamp: str = Field(default_factory=_utc_timestamp)


class ErrorDetail(BaseModel):
    code: str = Field(..., description="기계가 읽는 에러 코드")
    message: str
    field: Optional[str] = Field(None, description="검증 에러가 난 필드 경로")
    context: Optional[Dict[str, Any]] = None


class ErrorEnvelope(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "errors": [{"code": "UNAUTHORIZED", "message": "Unauthorized"}],
                "message": "Unauthorized",
                "timestamp": "2024-01-25T12:00:00.000000Z",
                "request_id": "req_20240125_120000_1a2b3c4d",
                "error_type": "UNAUTHORIZED",
            }
        }
    )

    success: bool = False
    errors: List[ErrorDetail]
    message: str
    timestamp: str = Field(default_factory=_utc_timestamp)
    request_id: Optional[str] = None
    error_type: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = None


def success_response(
    data: Any = None,
    message: str = "Request processed successfully",
    status_code: int = HTTPStatusCodes.OK,
) -> JSONResponse:
    envelope = SuccessEnvelope(data=data, message=message)
    return JSONResponse(content=envelope.model_dump(mode="json", exclude_none=True), status_code=status_code)


def error_response(
    errors: List[Union[ErrorDetail, Dict[str, Any]]],
    message: str = "Request failed",
    status_code: int = HTTPStatusCodes.BAD_REQUEST,
    headers: Optional[Dict[str, str]] = None,
    **envelope_fields
) -> JSONResponse:
    """
    Build the error envelope.

    Args:
        errors: ErrorDetail 또는 같은 키를 가진 dict 목록
        envelope_fields: request_id, error_type, path, method
    """
    details = [ErrorDetail(**e) if isinstance(e, dict) else e for e in errors]
    envelope = ErrorEnvelope(errors=details, message=message, **envelope_fields)
    return JSONResponse(
        content=envelope.model_dump(mode="json", exclude_none=True),
        status_code=status_code,
        headers=headers,
    )


def validation_error_response(errors: List[Dict[str, Any]], message: str = "Validation failed", **envelope_fields) -> JSONResponse:
    return error_response(
        errors=errors,
        message=message,
        status_code=HTTPStatusCodes.UNPROCESSABLE_ENTITY,
        error_type="VALIDATION_ERROR",
        **envelope_fields
    )
