"""
对外统一入口：上层只从这里 import Pinterest 客户端。
"""

from .pinterest_client import (
    PinterestClient,
    MEDIA_PENDING_STATUSES,
    MEDIA_SUCCEEDED,
    MEDIA_FAILED,
)


__all__ = [
    "PinterestClient",
    "MEDIA_PENDING_STATUSES", "MEDIA_SUCCEEDED", "MEDIA_FAILED",
]
