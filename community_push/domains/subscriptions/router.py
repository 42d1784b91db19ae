from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, Request, status

from ...core.config import settings
from ...core.dependencies import get_composer_options, get_push_transport, get_subscription_registry
from ...shared.exceptions import BadRequestException, PushNotConfiguredException, RegistryUnavailableException
from ...shared.responses import HTTPStatusCodes, success_response
from ..broadcasts.composer import ComposerOptions
from ..broadcasts.service import send_welcome_notification
from ..broadcasts.transport import PushTransport
from .models import PushSubscription, SubscriptionKeys, detect_device
from .schemas import (
    PublicKeyData,
    PublicKeyResponse,
    SubscriptionRegisterRequest,
    SubscriptionRemoveRequest,
    SubscriptionResult,
)
from .service import RegistryUnavailableError, SubscriptionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/push",
    tags=["푸시 구독"],
    responses={
        503: {"description": "푸시 기능 미설정 또는 레지스트리 장애"},
        422: {"description": "요청 데이터 검증 실패"}
    }
)


@router.get(
    "/public-key",
    response_model=PublicKeyResponse,
    response_model_by_alias=True,
    summary="VAPID 공개키 조회",
    description="브라우저가 푸시 서비스에 구독할 때 사용하는 application server key 를 반환합니다.",
)
async def get_public_key():
    if not settings.push_configured:
        raise PushNotConfiguredException()
    return PublicKeyResponse(data=PublicKeyData(public_key=settings.vapid_public_key.strip()))


@router.post(
    "/subscriptions",
    status_code=status.HTTP_201_CREATED,
    summary="푸시 구독 등록",
    description="""
    endpoint 기준으로 구독을 저장합니다 (upsert).

    - 새 endpoint: 201
    - 이미 등록된 endpoint: 키/메타데이터 갱신 후 200
    - 등록 직후 환영 알림을 best-effort 로 발송
    """,
)
async def register_subscription(
    payload: SubscriptionRegisterRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    registry: SubscriptionRegistry = Depends(get_subscription_registry),
    transport: Optional[PushTransport] = Depends(get_push_transport),
    options: ComposerOptions = Depends(get_composer_options),
):
    user_agent = payload.user_agent or request.headers.get("user-agent")
    subscription = PushSubscription(
        endpoint=payload.endpoint,
        keys=SubscriptionKeys(p256dh=payload.keys.p256dh, auth=payload.keys.auth),
        device=payload.device or detect_device(user_agent),
        user_agent=user_agent,
    )

    try:
        created = await registry.register(subscription)
    except RegistryUnavailableError as e:
        raise RegistryUnavailableException() from e

    if settings.send_welcome_notification and transport is not None:
        background_tasks.add_task(send_welcome_notification, transport, subscription, options)

    result = SubscriptionResult(endpoint=subscription.endpoint, device=subscription.device, created=created)
    return success_response(
        data=result.model_dump(),
        message="Subscription registered" if created else "Subscription updated",
        status_code=HTTPStatusCodes.CREATED if created else HTTPStatusCodes.OK,
    )


@router.delete(
    "/subscriptions",
    summary="푸시 구독 해제",
    description="endpoint 에 해당하는 구독을 삭제합니다. 없는 endpoint 는 오류 없이 무시됩니다.",
)
async def remove_subscription(
    payload: Optional[SubscriptionRemoveRequest] = Body(default=None),
    endpoint: Optional[str] = Query(default=None, description="body 대신 query 로 전달 가능"),
    registry: SubscriptionRegistry = Depends(get_subscription_registry),
):
    target = payload.endpoint if payload is not None else (endpoint or "").strip()
    if not target:
        raise BadRequestException("endpoint is required", field="endpoint")

    try:
        removed = await registry.unregister(target)
    except RegistryUnavailableError as e:
        raise RegistryUnavailableException() from e

    return success_response(
        data={"endpoint": target, "removed": removed},
        message="Subscription removed" if removed else "Subscription not found",
    )
