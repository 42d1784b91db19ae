"""
HTTP-facing error taxonomy for the push service.

각 예외는 상태 코드, 기계가 읽는 error_code, 사람이 읽는 메시지를 가지며
handlers.py 에서 표준 에러 envelope 으로 변환된다.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException

from ..responses import ErrorDetail, HTTPStatusCodes

# 레지스트리 장애 시 클라이언트에게 권장하는 재시도 간격(초)
REGISTRY_RETRY_AFTER = 30


class BaseAPIException(HTTPException):
    """Base class: status + error_code + message, plus free-form context kwargs."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        errors: Optional[List[ErrorDetail]] = None,
        headers: Optional[Dict[str, Any]] = None,
        **context
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.error_code = error_code
        self.errors = errors or []
        self.context = context

    def to_error_detail(self) -> ErrorDetail:
        field = self.context.get("field")
        extra = {k: v for k, v in self.context.items() if k != "field"}
        return ErrorDetail(
            code=self.error_code,
            message=self.detail,
            field=field,
            context=extra or None,
        )


class BadRequestException(BaseAPIException):
    """잘못된 요청 본문 (400). 예: JSON 파싱 실패, endpoint 누락"""

    def __init__(self, message: str = "Bad request", error_code: str = "BAD_REQUEST", **context):
        super().__init__(HTTPStatusCodes.BAD_REQUEST, error_code, message, **context)


class UnauthorizedException(BaseAPIException):
    # 컨텍스트 없음: 거부 사실 외에는 아무것도 알려주지 않는다
    def __init__(self):
        super().__init__(
            HTTPStatusCodes.UNAUTHORIZED,
            "UNAUTHORIZED",
            "Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


class ConfigurationException(BaseAPIException):
    """운영자 설정 누락 (500): webhook secret 또는 VAPID 키 쌍"""

    def __init__(self, message: str = "Server configuration error", setting: Optional[str] = None):
        context = {"setting": setting} if setting else {}
        super().__init__(
            HTTPStatusCodes.INTERNAL_SERVER_ERROR,
            "CONFIGURATION_ERROR",
            message,
            **context
        )


class ServiceUnavailableException(BaseAPIException):
    """A dependency is down or a feature is switched off (503)."""

    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        service_name: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        headers = {"Retry-After": str(retry_after)} if retry_after else None
        context: Dict[str, Any] = {}
        if service_name:
            context["service_name"] = service_name
        if retry_after:
            context["retry_after"] = retry_after
        super().__init__(
            HTTPStatusCodes.SERVICE_UNAVAILABLE,
            "SERVICE_UNAVAILABLE",
            message,
            headers=headers,
            **context
        )


class RegistryUnavailableException(ServiceUnavailableException):
    def __init__(self):
        super().__init__(
            "Subscription registry unavailable",
            service_name="registry",
            retry_after=REGISTRY_RETRY_AFTER,
        )


class PushNotConfiguredException(ServiceUnavailableException):
    """Public key requested while the VAPID pair is missing."""

    def __init__(self):
        super().__init__("Push notifications not configured", service_name="web-push")
