# 商品处理状态：标记 已发布 / 忽略 / 重置 / 恢复

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.integrations.shopify.shopify_client import ShopifyClient
from app.repository.pinned_product_repo import PinnedProductMeta
from app.services import publish_service
from app.services.auth_service import ShopContext, get_current_shop
from app.api.v1.deps import get_shopify_client, read_payload


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["product-status"])


def _meta(payload: Dict[str, Any]) -> PinnedProductMeta:
    return PinnedProductMeta(
        product_handle=payload.get("handle"),
        title=payload.get("title"),
        image_url=payload.get("imageUrl") or payload.get("image"),
    )


@router.post("/mark-published")
def mark_published(
    payload: Dict[str, Any] = Depends(read_payload),
    ctx: ShopContext = Depends(get_current_shop),
    client: ShopifyClient = Depends(get_shopify_client),
    db: Session = Depends(get_db),
):
    publish_service.mark_published(db, client, ctx.shop, payload.get("productId"), _meta(payload))
    return {"success": True}


@router.post("/ignore")
def mark_ignored(
    payload: Dict[str, Any] = Depends(read_payload),
    ctx: ShopContext = Depends(get_current_shop),
    client: ShopifyClient = Depends(get_shopify_client),
    db: Session = Depends(get_db),
):
    publish_service.mark_ignored(db, client, ctx.shop, payload.get("productId"), _meta(payload))
    return {"success": True}


@router.post("/reset")
def reset_product(
    payload: Dict[str, Any] = Depends(read_payload),
    ctx: ShopContext = Depends(get_current_shop),
    client: ShopifyClient = Depends(get_shopify_client),
    db: Session = Depends(get_db),
):
    tags = publish_service.reset_product(db, client, ctx.shop, payload.get("productId"))
    return {"success": True, "tags": tags}


'''
POST /products/reset-all
   单次最多 TAG_RESET_LIMIT 个；remaining=true 时前端再调一次
'''
@router.post("/reset-all")
def reset_all(
    ctx: ShopContext = Depends(get_current_shop),
    client: ShopifyClient = Depends(get_shopify_client),
    db: Session = Depends(get_db),
):
    result = publish_service.reset_all_published(db, client, ctx.shop)
    return {"success": True, **result}


@router.post("/restore")
def restore_product(
    payload: Dict[str, Any] = Depends(read_payload),
    ctx: ShopContext = Depends(get_current_shop),
    client: ShopifyClient = Depends(get_shopify_client),
    db: Session = Depends(get_db),
):
    publish_service.restore_product(db, client, ctx.shop, payload.get("productId"), payload.get("tag"))
    return {"success": True}
