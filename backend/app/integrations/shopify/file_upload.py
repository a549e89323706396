"""
把一张图片（原始字节）变成 Shopify Files 里的公开 URL：
   1) stagedUploadsCreate 申请临时上传目标
   2) multipart POST 到目标 URL（parameters 按返回顺序在前，file 在最后）
   3) fileCreate 用 resourceUrl 注册成永久文件
   4) 返回里没 URL 时按 node(id) 固定次数轮询
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from app.core.config import settings
from app.core.errors import ProcessingFailedError
from app.integrations.shopify.shopify_client import ShopifyClient


logger = logging.getLogger(__name__)

FILE_STATUS_FAILED = "FAILED"


@dataclass(slots=True)
class UploadResult:
    url: Optional[str]
    id: str
    status: Optional[str] = None


def upload_image_to_shopify(
    client: ShopifyClient,
    image_bytes: bytes,
    filename: str,
    mime_type: str = "image/jpeg",
    *,
    alt: Optional[str] = None,
) -> UploadResult:
    # 1) 申请上传目标
    target = client.staged_uploads_create(filename, mime_type, len(image_bytes))

    # 2) 上传到 staging（失败直接 UploadError，不再往下走）
    client.upload_to_staged_target(target, image_bytes, filename, mime_type)

    # 3) 注册成 Shopify 文件：引用 resourceUrl，不是原始字节
    node = client.file_create(target["resourceUrl"], alt=alt)
    logger.info("shopify.file.created id=%s kind=%s status=%s has_url=%s",
        node.id, node.kind, node.status, bool(node.url))

    if node.status == FILE_STATUS_FAILED:
        raise ProcessingFailedError(f"Shopify file {node.id} failed processing")
    if node.url:
        return UploadResult(url=node.url, id=node.id, status=node.status)

    # 4) 异步处理中：固定次数轮询
    return _poll_file_url(client, node.id, node.status)


def _poll_file_url(client: ShopifyClient, file_id: str, status: Optional[str]) -> UploadResult:
    attempts = settings.SHOPIFY_FILE_POLL_ATTEMPTS
    interval = settings.SHOPIFY_FILE_POLL_INTERVAL_SEC

    for attempt in range(1, attempts + 1):
        time.sleep(interval)
        node = client.get_file(file_id)
        if node is None:
            logger.info("shopify.file.poll id=%s attempt=%s/%s node=missing", file_id, attempt, attempts)
            continue

        status = node.status or status
        logger.info("shopify.file.poll id=%s attempt=%s/%s status=%s has_url=%s",
            file_id, attempt, attempts, node.status, bool(node.url))

        if node.url:
            return UploadResult(url=node.url, id=file_id, status=status)
        if node.status == FILE_STATUS_FAILED:
            raise ProcessingFailedError(f"Shopify file {file_id} failed processing")

    # 预算用完还没 URL：不算错误，由调用方处理 url=None
    logger.warning("shopify.file.poll_exhausted id=%s attempts=%s status=%s", file_id, attempts, status)
    return UploadResult(url=None, id=file_id, status=status)
