# 商品相关查询接口 -> 前端工作队列 / 管理页 调用

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import RemoteAPIError, ValidationError
from app.db.model.pinned_product import PIN_STATUS_PUBLISHED
from app.db.session import get_db
from app.integrations.shopify.graphql_queries import build_products_search
from app.integrations.shopify.shopify_client import ShopifyClient
from app.repository.pinned_product_repo import list_by_status
from app.services.auth_service import ShopContext, get_current_shop
from app.api.v1.deps import get_shopify_client


logger = logging.getLogger(__name__)

router = APIRouter(tags=["products"])


# ---------- Pydantic 模型 ----------
class PinnedProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    product_handle: Optional[str] = None
    title: Optional[str] = None
    image_url: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None


def _search_for_view(view: str, collection_id: Optional[str] = None) -> str:
    published, ignored = settings.PIN_TAG_PUBLISHED, settings.PIN_TAG_IGNORED
    if view == "published":
        return build_products_search(include_tags=(published,))
    if view == "ignored":
        return build_products_search(include_tags=(ignored,))
    # unpublished（默认）
    return build_products_search(exclude_tags=(published, ignored), collection_id=collection_id)



# ---------- 单个商品 ----------
@router.get("/products/detail")
def product_detail(
    id: Optional[str] = Query(None, description="gid://shopify/Product/..."),
    client: ShopifyClient = Depends(get_shopify_client),
):
    if not id:
        raise ValidationError("Missing ID")
    product = client.get_product(id)
    if product is None:
        raise RemoteAPIError(f"product not found: {id}", status=404)
    return {"success": True, "product": product}



# ---------- 管理页列表（published / ignored / unpublished） ----------
@router.get("/products")
def list_products(
    view: Literal["published", "ignored", "unpublished"] = Query("published"),
    client: ShopifyClient = Depends(get_shopify_client),
):
    products = client.list_products(
        _search_for_view(view),
        first=settings.PRODUCT_LIST_LIMIT,
        images_first=1,
    )
    return {"success": True, "view": view, "products": products}



# ---------- 工作队列数据源：未处理且有图片的商品 ----------
@router.get("/products/unpublished")
def list_unpublished(
    collection_id: Optional[str] = Query(None),
    client: ShopifyClient = Depends(get_shopify_client),
):
    products = client.list_products(
        _search_for_view("unpublished", collection_id),
        first=settings.PRODUCT_LIST_LIMIT,
        images_first=10,
    )
    products = [p for p in products if p.get("images")]
    return {"success": True, "products": products}



# ---------- 本地状态表（不查 Shopify） ----------
@router.get("/products/pinned")
def list_pinned(
    status: Literal["PUBLISHED", "IGNORED"] = Query(PIN_STATUS_PUBLISHED),
    ctx: ShopContext = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    rows = list_by_status(db, ctx.shop, status)
    items: List[dict] = [PinnedProductOut.model_validate(r).model_dump(mode="json") for r in rows]
    return {"success": True, "status": status, "items": items}



# ---------- 集合筛选项 ----------
@router.get("/collections")
def list_collections(client: ShopifyClient = Depends(get_shopify_client)):
    return {"success": True, "collections": client.list_collections()}
