# 生成 Pinterest "create pin" 按钮链接 + 商品落地页 URL

from __future__ import annotations

import re
from typing import Any, Mapping, Optional
from urllib.parse import quote

from app.core.config import settings


PIN_CREATE_BASE = "https://www.pinterest.com/pin/create/button/"
URL_MODE_DEFAULT = "default"
URL_MODE_CUSTOM = "custom"
FALLBACK_DESCRIPTION = "Check out this product!"

_TAG_RE = re.compile(r"<[^>]+>")


def build_destination_url(
    product: Mapping[str, Any],
    shop: str,
    url_mode: str = URL_MODE_DEFAULT,
    custom_domain: Optional[str] = None,
) -> str:
    """
    custom：<域名去掉结尾斜杠>/products/<handle>，没 handle 就只给域名
    default：onlineStoreUrl → https://<shop>/products/<handle> → https://<shop>
    """
    handle = product.get("handle")
    if url_mode == URL_MODE_CUSTOM and custom_domain:
        domain = custom_domain.rstrip("/")
        return f"{domain}/products/{handle}" if handle else domain

    if product.get("onlineStoreUrl"):
        return product["onlineStoreUrl"]
    if handle:
        return f"https://{shop}/products/{handle}"
    return f"https://{shop}"


def build_pin_description(product: Mapping[str, Any], max_len: Optional[int] = None) -> str:
    max_len = max_len or settings.PIN_DESCRIPTION_MAX_LEN
    raw = _TAG_RE.sub("", product.get("descriptionHtml") or "").strip()
    return (raw or product.get("title") or FALLBACK_DESCRIPTION)[:max_len]


def build_pin_create_url(product_url: str, media_url: str, description: str) -> str:
    # 每一段单独百分号编码（等价 encodeURIComponent）
    return (
        f"{PIN_CREATE_BASE}?url={quote(product_url, safe='')}"
        f"&media={quote(media_url, safe='')}"
        f"&description={quote(description, safe='')}"
    )


def build_pin_url_for_product(
    product: Mapping[str, Any],
    media_url: str,
    shop: str,
    url_mode: str = URL_MODE_DEFAULT,
    custom_domain: Optional[str] = None,
) -> str:
    return build_pin_create_url(
        build_destination_url(product, shop, url_mode, custom_domain),
        media_url,
        build_pin_description(product),
    )
