"""
发布编排：把合成 / Shopify 上传 / 打标签 / 状态表 串成 API 能直接调用的动作

  upload_and_tag       图片 → Shopify Files →（有 product_id 时）打 Published 标签 + 写状态表 → pin 链接
  mark_published       打标签 + 写状态表
  mark_ignored         打标签 + 写状态表
  reset_product        清状态表 → 取标签 → productUpdate 去掉 Published
  reset_all_published  最多 limit 个带标签商品，线程池并发去标签，汇总 count/total/remaining
  restore_product      tagsRemove（默认 Ignored）+ 清状态表
  publish_to_pinterest 直接发 pin（Celery 任务里调用），成功后标记 Published
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Mapping, Optional

import requests
from requests import RequestException
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import RemoteAPIError, ValidationError
from app.db.model.pinned_product import PIN_STATUS_IGNORED, PIN_STATUS_PUBLISHED
from app.integrations.pinterest import PinterestClient
from app.integrations.shopify.file_upload import UploadResult, upload_image_to_shopify
from app.integrations.shopify.graphql_queries import build_products_search
from app.integrations.shopify.shopify_client import ShopifyClient
from app.repository.pinned_product_repo import (
    PinnedProductMeta,
    clear_status,
    clear_statuses,
    upsert_status,
)
from app.repository.shop_settings_repo import get_shop_settings
from app.services.image_compositor import CropSpec, Flip, WatermarkSpec, get_cropped_image
from app.services.pin_link import URL_MODE_DEFAULT, build_pin_url_for_product
from app.utils.serialization import split_data_url


logger = logging.getLogger(__name__)


# ---------- 图片输入 ----------
def decode_image_input(image: Optional[str]) -> bytes:
    """前端传来的 data:image/jpeg;base64,... → 字节。"""
    if not image:
        raise ValidationError("No image provided")
    _, raw = split_data_url(image)
    if not raw:
        raise ValidationError("Invalid image format")
    return raw


def load_image_bytes(url: str) -> bytes:
    """下载商品原图（Shopify CDN），交给合成器。"""
    try:
        resp = requests.get(url, timeout=settings.SOURCE_IMAGE_TIMEOUT)
    except RequestException as e:
        raise RemoteAPIError(f"cannot fetch source image: {e}") from e
    if not (200 <= resp.status_code < 300):
        raise RemoteAPIError(
            f"cannot fetch source image: HTTP {resp.status_code}",
            status=resp.status_code, body=(resp.text or "")[:300])
    return resp.content


def _product_meta(product: Optional[Mapping[str, Any]], image_url: Optional[str] = None) -> PinnedProductMeta:
    product = product or {}
    return PinnedProductMeta(
        product_handle=product.get("handle"),
        title=product.get("title"),
        image_url=image_url or product.get("image"),
    )


def resolve_watermark(db: Session, shop: str, watermark: Optional[Mapping[str, Any]]) -> Optional[WatermarkSpec]:
    # 请求里没带水印就用店铺设置里保存的
    if watermark is None:
        watermark = (get_shop_settings(db, shop) or {}).get("watermark")
    return WatermarkSpec.from_settings(watermark)


def composite_from_source(
    db: Session,
    shop: str,
    source_url: str,
    crop: Mapping[str, Any],
    *,
    rotation: float = 0,
    flip: Optional[Mapping[str, Any]] = None,
    watermark: Optional[Mapping[str, Any]] = None,
) -> bytes:
    flip = flip or {}
    return get_cropped_image(
        load_image_bytes(source_url),
        CropSpec.from_dict(crop),
        rotation=float(rotation or 0),
        flip=Flip(horizontal=bool(flip.get("horizontal")), vertical=bool(flip.get("vertical"))),
        watermark=resolve_watermark(db, shop, watermark),
    )



'''
上传 + 打标签
   - image（data URL，浏览器里已经裁好）和 source_url + crop（服务端合成）二选一
   - 没有 product_id 时只上传，不动标签/状态表
   - 上传成功但 URL 还没生成（轮询预算用完）：照常返回，pin_url 为 None
'''
def upload_and_tag(
    db: Session,
    client: ShopifyClient,
    shop: str,
    *,
    image: Optional[str] = None,
    source_url: Optional[str] = None,
    crop: Optional[Mapping[str, Any]] = None,
    rotation: float = 0,
    flip: Optional[Mapping[str, Any]] = None,
    watermark: Optional[Mapping[str, Any]] = None,
    product_id: Optional[str] = None,
    url_mode: str = URL_MODE_DEFAULT,
    custom_domain: Optional[str] = None,
) -> Dict[str, Any]:

    if image:
        raw = decode_image_input(image)
    elif source_url and crop:
        raw = composite_from_source(db, shop, source_url, crop, rotation=rotation, flip=flip, watermark=watermark)
    else:
        raise ValidationError("No image provided")

    filename = f"pinterest-crop-{int(time.time() * 1000)}.jpg"
    result: UploadResult = upload_image_to_shopify(client, raw, filename)
    out: Dict[str, Any] = {"imageUrl": result.url, "fileId": result.id, "fileStatus": result.status}

    if not product_id:
        return out

    product = client.get_product(product_id)
    client.tags_add(product_id, [settings.PIN_TAG_PUBLISHED])
    upsert_status(db, shop, product_id, PIN_STATUS_PUBLISHED, _product_meta(product, result.url))

    out["pinUrl"] = (
        build_pin_url_for_product(product, result.url, shop, url_mode, custom_domain)
        if product and result.url else None
    )
    logger.info("publish.upload_and_tag shop=%s product=%s file=%s has_url=%s",
        shop, product_id, result.id, bool(result.url))
    return out


# ---------- 单个商品状态 ----------
def _mark(db: Session, client: ShopifyClient, shop: str, product_id: str, tag: str, status: str,
          meta: Optional[PinnedProductMeta]) -> None:
    if not product_id:
        raise ValidationError("Missing Product ID")
    client.tags_add(product_id, [tag])
    upsert_status(db, shop, product_id, status, meta)
    logger.info("publish.mark shop=%s product=%s status=%s", shop, product_id, status)


def mark_published(db: Session, client: ShopifyClient, shop: str, product_id: str,
                   meta: Optional[PinnedProductMeta] = None) -> None:
    _mark(db, client, shop, product_id, settings.PIN_TAG_PUBLISHED, PIN_STATUS_PUBLISHED, meta)


def mark_ignored(db: Session, client: ShopifyClient, shop: str, product_id: str,
                 meta: Optional[PinnedProductMeta] = None) -> None:
    _mark(db, client, shop, product_id, settings.PIN_TAG_IGNORED, PIN_STATUS_IGNORED, meta)


def reset_product(db: Session, client: ShopifyClient, shop: str, product_id: str) -> List[str]:
    """回到"未处理"：先清状态表，再用 productUpdate 写回去掉 Published 的标签组。"""
    if not product_id:
        raise ValidationError("Product ID is required")

    clear_status(db, shop, product_id)
    current = client.get_product_tags(product_id)
    new_tags = [t for t in current if t != settings.PIN_TAG_PUBLISHED]
    client.product_update_tags(product_id, new_tags)
    logger.info("publish.reset shop=%s product=%s removed=%s", shop, product_id, len(current) - len(new_tags))
    return new_tags


def restore_product(db: Session, client: ShopifyClient, shop: str, product_id: str,
                    tag: Optional[str] = None) -> None:
    if not product_id:
        raise ValidationError("Missing ID")
    client.tags_remove(product_id, [tag or settings.PIN_TAG_IGNORED])
    clear_status(db, shop, product_id)
    logger.info("publish.restore shop=%s product=%s tag=%s", shop, product_id, tag or settings.PIN_TAG_IGNORED)



'''
批量重置（每次最多 limit 个）
   - 查询带 Published 标签的商品（不限 status，所有带标签的都要清）
   - 线程池并发 productUpdate；某个失败不影响其它，最后只汇总成功数
   - 并发结束后才在请求线程里清状态表
   - remaining = (total == limit)：可能还有下一批，调用方再调一次
'''
def reset_all_published(db: Session, client: ShopifyClient, shop: str,
                        limit: Optional[int] = None) -> Dict[str, Any]:
    limit = limit or settings.TAG_RESET_LIMIT
    tag = settings.PIN_TAG_PUBLISHED

    products = client.list_products(
        build_products_search(include_tags=(tag,), status=None),
        first=limit,
        images_first=1,
    )
    total = len(products)
    if total == 0:
        return {"count": 0, "total": 0, "remaining": False, "message": "No published products found to reset."}

    def _strip_tag(product: Mapping[str, Any]) -> bool:
        tags = product.get("tags") or []
        new_tags = [t for t in tags if t != tag]
        if len(new_tags) == len(tags):
            # 查询结果和实际标签不一致：已经没有这个标签了
            return False
        client.product_update_tags(product["id"], new_tags)
        return True

    succeeded: List[str] = []
    with ThreadPoolExecutor(max_workers=min(settings.TAG_RESET_WORKERS, total)) as pool:
        futures = {pool.submit(_strip_tag, p): p["id"] for p in products}
        for fut in as_completed(futures):
            product_id = futures[fut]
            try:
                if fut.result():
                    succeeded.append(product_id)
            except Exception as e:
                logger.warning("publish.reset_all.item_failed shop=%s product=%s err=%s", shop, product_id, e)

    clear_statuses(db, shop, succeeded)
    logger.info("publish.reset_all shop=%s count=%s total=%s", shop, len(succeeded), total)
    return {"count": len(succeeded), "total": total, "remaining": total == limit}


# ---------- Pinterest 直发 ----------
def publish_to_pinterest(
    db: Session,
    shopify: ShopifyClient,
    pinterest: PinterestClient,
    shop: str,
    *,
    board_id: str,
    title: str,
    description: str,
    link: str,
    image_bytes: bytes,
    product_id: Optional[str] = None,
    meta: Optional[PinnedProductMeta] = None,
) -> Dict[str, Any]:
    if not board_id:
        raise ValidationError("board_id is required")

    pin = pinterest.publish_pin(board_id, title, description, link, image_bytes)
    if product_id:
        mark_published(db, shopify, shop, product_id, meta)
    return {"pin": pin, "productId": product_id}
