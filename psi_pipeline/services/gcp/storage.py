"""
Cloud Storage JSON API 客户端
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol
from urllib.parse import quote

if TYPE_CHECKING:
    from psi_pipeline.services.gcp.base import GoogleBaseClient

logger = logging.getLogger(__name__)

GCS_HOST = "https://storage.googleapis.com"


class ObjectStorageLike(Protocol):
    async def upload_bytes(
        self, bucket: str, name: str, data: bytes, *, content_type: str = "application/json"
    ) -> None: ...

    async def download_bytes(self, bucket: str, name: str) -> bytes: ...


class GcsClient:
    """
    GCS 对象读写封装（只覆盖本项目需要的 simple upload / media download）
    """

    def __init__(self, base: "GoogleBaseClient") -> None:
        self._base = base

    async def upload_bytes(
        self,
        bucket: str,
        name: str,
        data: bytes,
        *,
        content_type: str = "application/json",
    ) -> None:
        """
        API: POST /upload/storage/v1/b/{bucket}/o?uploadType=media
        """
        await self._base.request(
            "POST",
            f"{GCS_HOST}/upload/storage/v1/b/{quote(bucket, safe='')}/o",
            params={"uploadType": "media", "name": name},
            content=data,
            headers={"Content-Type": content_type},
        )
        logger.debug("Uploaded gs://%s/%s (%s bytes)", bucket, name, len(data))

    async def download_bytes(self, bucket: str, name: str) -> bytes:
        """
        API: GET /storage/v1/b/{bucket}/o/{object}?alt=media

        对象不存在时抛出 GoogleAPIError(status_code=404)。
        """
        resp = await self._base.request(
            "GET",
            f"{GCS_HOST}/storage/v1/b/{quote(bucket, safe='')}/o/{quote(name, safe='')}",
            params={"alt": "media"},
        )
        return resp.content
