"""
Pinterest v5 客户端：boards 列表 + 发 pin 的四步流程
  1) POST /media 登记一个 image 占位 → upload_url / upload_parameters / media_id
  2) multipart 上传字节（parameters 在前，file 最后）
  3) 轮询 GET /media/{id}：registering/processing 继续等，succeeded 结束，failed 抛错
  4) POST /pins，cover_image_id 指向处理好的 media
任一步非 2xx 直接 RemoteAPIError 中止，不回滚（media 成功但 pin 失败时不删 media）。
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import requests
from requests import RequestException

from app.core.config import settings
from app.core.errors import (
    MediaProcessingError,
    ProcessingTimeoutError,
    RemoteAPIError,
    UploadError,
    ValidationError,
)


logger = logging.getLogger(__name__)

MEDIA_PENDING_STATUSES = ("registering", "processing")
MEDIA_SUCCEEDED = "succeeded"
MEDIA_FAILED = "failed"


class PinterestClient:

    def __init__(
        self,
        access_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        token = access_token
        if token is None and settings.PINTEREST_ACCESS_TOKEN is not None:
            token = settings.PINTEREST_ACCESS_TOKEN.get_secret_value()
        self.access_token = token
        self.base_url = (base_url or settings.PINTEREST_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PINTEREST_HTTP_TIMEOUT
        self._session = session or requests.Session()


    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.access_token or ''}",
            "Content-Type": "application/json",
        }


    def _request(self, method: str, path: str, *, op_name: str, json_body: Optional[dict] = None) -> Any:
        """单次请求，不重试；非 2xx 带响应体抛 RemoteAPIError。"""
        url = f"{self.base_url}/{path.lstrip('/')}"
        start = time.perf_counter()
        try:
            resp = self._session.request(
                method, url, headers=self._headers(), json=json_body, timeout=self.timeout,
            )
        except RequestException as e:
            logger.warning("pinterest.request_exception op=%s err=%s", op_name, type(e).__name__)
            raise RemoteAPIError(f"Pinterest {op_name} request failed: {e}") from e

        latency_ms = int((time.perf_counter() - start) * 1000)
        if not (200 <= resp.status_code < 300):
            body = resp.text or ""
            logger.warning("pinterest.http_error op=%s status=%s latency_ms=%s",
                op_name, resp.status_code, latency_ms)
            raise RemoteAPIError(
                f"Pinterest {op_name} failed: HTTP {resp.status_code} - {body[:300]}",
                status=resp.status_code, body=body)

        logger.info("pinterest.ok op=%s status=%s latency_ms=%s", op_name, resp.status_code, latency_ms)
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteAPIError(
                f"Pinterest {op_name} returned non-JSON body",
                status=resp.status_code, body=(resp.text or "")[:1000]) from e


    # ---------- boards ----------
    def list_boards(self) -> List[dict]:
        data = self._request("GET", "/boards", op_name="boards.list")
        return list((data or {}).get("items") or [])


    # ---------- media ----------
    def register_media(self) -> Dict[str, Any]:
        data = self._request("POST", "/media", op_name="media.register", json_body={"media_type": "image"})
        if not data or not data.get("media_id") or not data.get("upload_url"):
            raise RemoteAPIError("Pinterest media.register returned no media_id/upload_url", body=str(data))
        return data


    def upload_media(self, upload_url: str, upload_parameters: Dict[str, Any], image_bytes: bytes,
                     *, filename: str = "pin.jpg", mime_type: str = "image/jpeg") -> None:
        # 上传目标是预签名的存储地址：不带 Authorization
        fields = list((upload_parameters or {}).items())
        try:
            resp = self._session.post(
                upload_url,
                data=fields,
                files={"file": (filename, image_bytes, mime_type)},
                timeout=self.timeout,
            )
        except RequestException as e:
            raise UploadError(f"Pinterest media upload failed: {e}") from e

        if not (200 <= resp.status_code < 300):
            body = resp.text or ""
            logger.warning("pinterest.media.upload_failed status=%s", resp.status_code)
            raise UploadError(
                f"Failed to upload media: HTTP {resp.status_code} - {body[:300]}",
                status=resp.status_code, body=body)
        logger.info("pinterest.media.uploaded bytes=%s", len(image_bytes))


    def get_media_status(self, media_id: str) -> Optional[str]:
        data = self._request("GET", f"/media/{media_id}", op_name="media.status")
        return (data or {}).get("status")


    def wait_for_media(self, media_id: str, *, interval: Optional[float] = None,
                       timeout: Optional[float] = None) -> None:
        """
        每 interval 秒查一次状态，先等再查。
        timeout 为 None 时不设上限；设置后超时抛 ProcessingTimeoutError。
        """
        interval = settings.PINTEREST_MEDIA_POLL_INTERVAL_SEC if interval is None else interval
        timeout = settings.PINTEREST_MEDIA_POLL_TIMEOUT_SEC if timeout is None else timeout
        deadline = time.monotonic() + timeout if timeout else None

        status: Optional[str] = "processing"
        polls = 0
        while status in MEDIA_PENDING_STATUSES:
            if deadline is not None and time.monotonic() >= deadline:
                raise ProcessingTimeoutError(
                    f"Pinterest media {media_id} still {status} after {timeout}s")
            time.sleep(interval)
            status = self.get_media_status(media_id)
            polls += 1
            logger.info("pinterest.media.poll media_id=%s poll=%s status=%s", media_id, polls, status)

            if status == MEDIA_SUCCEEDED:
                return
            if status == MEDIA_FAILED:
                raise MediaProcessingError(f"Pinterest media {media_id} failed processing")

        # 出现未知状态：当作已就绪，交给 create_pin 去判断
        logger.warning("pinterest.media.unexpected_status media_id=%s status=%s", media_id, status)


    # ---------- pins ----------
    def create_pin(self, board_id: str, title: str, description: str, link: str, media_id: str) -> dict:
        payload = {
            "board_id": board_id,
            "title": title,
            "description": description,
            "link": link,
            "media_source": {
                "source_type": "image_id",
                "cover_image_id": media_id,
            },
        }
        return self._request("POST", "/pins", op_name="pins.create", json_body=payload)


    def publish_pin(self, board_id: str, title: str, description: str, link: str, image_bytes: bytes) -> dict:
        if not board_id:
            raise ValidationError("board_id is required")
        if not image_bytes:
            raise ValidationError("image is required")

        media = self.register_media()
        media_id = str(media["media_id"])
        self.upload_media(media["upload_url"], media.get("upload_parameters") or {}, image_bytes)
        self.wait_for_media(media_id)
        pin = self.create_pin(board_id, title, description, link, media_id)
        logger.info("pinterest.pin.created pin_id=%s board_id=%s media_id=%s",
            (pin or {}).get("id"), board_id, media_id)
        return pin
