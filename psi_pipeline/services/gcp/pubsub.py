"""
Pub/Sub REST 客户端
"""
from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from psi_pipeline.services.gcp.base import GoogleBaseClient

logger = logging.getLogger(__name__)

PUBSUB_HOST = "https://pubsub.googleapis.com"


class PubSubClient:
    def __init__(self, base: "GoogleBaseClient", *, project_id: str) -> None:
        self._base = base
        self._project_id = project_id

    async def publish(self, topic_id: str, data: bytes) -> List[str]:
        """
        发布一条消息，返回 messageIds。

        API: POST /v1/projects/{project}/topics/{topic}:publish
        """
        payload = {"messages": [{"data": base64.b64encode(data).decode("ascii")}]}
        resp = await self._base.request(
            "POST",
            f"{PUBSUB_HOST}/v1/projects/{self._project_id}/topics/{topic_id}:publish",
            json=payload,
        )
        message_ids = resp.json().get("messageIds", [])
        logger.debug("Published to topic=%s message_ids=%s", topic_id, message_ids)
        return message_ids
