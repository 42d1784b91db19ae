from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from ...core.dependencies import get_broadcaster
from ...shared.exceptions import BadRequestException, RegistryUnavailableException
from ...shared.responses import success_response
from ..subscriptions.service import RegistryUnavailableError
from .models import BroadcastSummary, ContentChangeEvent
from .service import ContentChangeBroadcaster

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/webhooks",
    tags=["콘텐츠 변경 webhook"],
    responses={
        401: {"description": "공유 시크릿 불일치"},
        500: {"description": "서버 설정 누락 (webhook 시크릿 또는 VAPID 키)"},
        503: {"description": "구독 레지스트리 장애"}
    }
)


async def _parse_event(request: Request) -> ContentChangeEvent:
    raw = await request.body()
    try:
        body = json.loads(raw or b"null")
    except ValueError as e:
        raise BadRequestException("Request body is not valid JSON", error_code="INVALID_JSON") from e
    if not isinstance(body, dict):
        raise BadRequestException("Request body must be a JSON object", error_code="INVALID_JSON")
    try:
        return ContentChangeEvent.model_validate(body)
    except ValidationError as e:
        raise RequestValidationError(
            [{**error, "loc": ("body", *error["loc"])} for error in e.errors()]
        ) from e


@router.post(
    "/content-change",
    summary="콘텐츠 변경 신호 수신",
    description="""
    콘텐츠 백엔드가 엔티티 생성/수정/삭제 시 호출합니다.

    **인증:** `Authorization: Bearer <content_webhook_secret>`

    **처리 순서:** 인증 → 알림 생성 → 전체 구독자 발송 → 요약 반환.
    개별 발송 실패는 요약에 집계되며 요청 자체를 실패시키지 않습니다.
    """,
)
@router.post("/strapi", include_in_schema=False)
async def content_change(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    broadcaster: ContentChangeBroadcaster = Depends(get_broadcaster),
):
    # 본문 파싱 전에 인증
    broadcaster.authenticate(authorization)
    event = await _parse_event(request)

    try:
        summary: BroadcastSummary = await broadcaster.broadcast(event)
    except RegistryUnavailableError as e:
        raise RegistryUnavailableException() from e

    data = summary.model_dump()
    # 이전 클라이언트 호환용 필드
    data["sent"] = summary.succeeded
    return success_response(data=data, message=summary.message)
