"""
   统一异常类型：合成 / Shopify 上传 / Pinterest 发布 三条链路共用。
   API 层在 main.py 里把它们转成 {"error": "..."}：ValidationError → 400，其余 → 500。
"""

from __future__ import annotations
from typing import Optional


class PinPublishError(Exception):
    """Base for all pipeline errors."""

    status_code: int = 500


class ValidationError(PinPublishError):
    """Missing or malformed input (no image, no board, bad crop...)."""

    status_code = 400


class RemoteAPIError(PinPublishError):
    """Non-2xx (or userErrors) from a vendor call; keeps the response body for diagnostics."""

    def __init__(self, message: str, *, status: Optional[int] = None, body: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class UploadError(RemoteAPIError):
    """Staged upload target rejected the multipart POST."""


class ProcessingTimeoutError(PinPublishError):
    """Poll budget exhausted without a terminal status."""


class ProcessingFailedError(PinPublishError):
    """Vendor explicitly reported a failed processing status."""


class MediaProcessingError(ProcessingFailedError):
    """Pinterest media ended in status=failed."""


class DecodeError(PinPublishError):
    """Source or watermark image could not be decoded."""


class RenderSurfaceError(PinPublishError):
    """Drawing surface could not be created (zero-sized or oversized)."""
