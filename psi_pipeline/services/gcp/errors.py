"""
Google API 异常定义
"""
from typing import Optional


class GoogleAPIError(Exception):
    """
    统一的 Google API 异常（PSI / GCS / Pub/Sub / BigQuery / metadata server）。
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
