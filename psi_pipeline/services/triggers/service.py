from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Protocol, Sequence

logger = logging.getLogger(__name__)


class PublisherLike(Protocol):
    async def publish(self, topic_id: str, data: bytes) -> Any: ...


class FanOutPublisher:
    """
    收到 `all` 时，为每个 source id 向同一个 topic 发一条触发消息。
    """

    def __init__(self, *, publisher: PublisherLike, topic_id: str) -> None:
        self._publisher = publisher
        self._topic_id = topic_id

    async def broadcast(self, source_ids: Sequence[str]) -> None:
        """
        所有 publish 并发执行并全部结束后才返回；
        单条失败不影响其它消息，第一条失败在最后重新抛出。
        """
        results = await asyncio.gather(
            *(self._publish_one(source_id) for source_id in source_ids),
            return_exceptions=True,
        )

        errors: List[BaseException] = []
        for source_id, result in zip(source_ids, results):
            if isinstance(result, BaseException):
                logger.error("%s: Init PubSub message failed: %s", source_id, result)
                errors.append(result)
        if errors:
            raise errors[0]

    async def _publish_one(self, source_id: str) -> None:
        logger.info("%s: Sending init PubSub message", source_id)
        await self._publisher.publish(self._topic_id, source_id.encode("utf-8"))
        logger.info("%s: Init PubSub message sent", source_id)
