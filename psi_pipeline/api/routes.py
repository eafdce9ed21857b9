from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from psi_pipeline.core.manager import JobOrchestrator, JobOutcome, JobStage

logger = logging.getLogger(__name__)

router = APIRouter()


class PubSubMessage(BaseModel):
    data: str = Field(default="", description="base64 编码的 source id 或 `all`")
    message_id: Optional[str] = Field(default=None, alias="messageId")
    attributes: Optional[Dict[str, str]] = None


class PubSubPushRequest(BaseModel):
    """
    Pub/Sub push 订阅的请求体
    """

    message: PubSubMessage
    subscription: Optional[str] = None


class PubSubPushResponse(BaseModel):
    outcome: JobOutcome
    stage: JobStage
    source_id: Optional[str] = None
    job_id: Optional[str] = None


def _get_orchestrator(request: Request) -> JobOrchestrator:
    return request.app.state.orchestrator


@router.get("/ping", summary="简单连通性测试")
async def ping() -> Dict[str, str]:
    return {"message": "pong"}


@router.post(
    "/pubsub/push",
    summary="Pub/Sub push 触发一次审计",
    response_model=PubSubPushResponse,
)
async def pubsub_push(payload: PubSubPushRequest, request: Request) -> Any:
    # 无论结果如何都返回 200，避免 Pub/Sub 对已处理消息重投
    logger.info(
        "Received Pub/Sub push message_id=%s subscription=%s",
        payload.message.message_id,
        payload.subscription,
    )
    result = await _get_orchestrator(request).run(payload.message.data)
    return PubSubPushResponse(
        outcome=result.outcome,
        stage=result.stage,
        source_id=result.source_id,
        job_id=result.job_id,
    )
