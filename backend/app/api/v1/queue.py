# 工作队列：快照读取 + 状态迁移（状态存在 shop_settings 里，刷新页面不丢进度）

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ValidationError
from app.db.session import get_db
from app.integrations.shopify.graphql_queries import build_products_search
from app.integrations.shopify.shopify_client import ShopifyClient
from app.services.auth_service import ShopContext, get_current_shop
from app.services.session_queue import QueueController, storage_for_shop
from app.api.v1.deps import get_shopify_client, parse_bool, parse_json_field, read_payload


router = APIRouter(prefix="/queue", tags=["queue"])


def get_queue_controller(
    ctx: ShopContext = Depends(get_current_shop),
    db: Session = Depends(get_db),
) -> QueueController:
    return QueueController(storage_for_shop(db, ctx.shop))


def _out(controller: QueueController) -> Dict[str, Any]:
    return {
        "success": True,
        "snapshot": controller.snapshot.model_dump(mode="json"),
        "currentProduct": controller.current_product,
    }


def _int_field(payload: Dict[str, Any], name: str) -> int:
    try:
        return int(payload[name])
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be an integer") from e


@router.get("")
def get_queue(controller: QueueController = Depends(get_queue_controller)):
    return _out(controller)


'''
POST /queue/load
   拉未处理商品（可按 collectionId 过滤）装进队列；已有队列会被替换
'''
@router.post("/load")
def load_queue(
    payload: Dict[str, Any] = Depends(read_payload),
    client: ShopifyClient = Depends(get_shopify_client),
    controller: QueueController = Depends(get_queue_controller),
):
    collection_id = payload.get("collectionId") or controller.snapshot.collection_filter
    search = build_products_search(
        exclude_tags=(settings.PIN_TAG_PUBLISHED, settings.PIN_TAG_IGNORED),
        collection_id=collection_id,
    )
    products = client.list_products(search, first=settings.PRODUCT_LIST_LIMIT, images_first=10)
    if collection_id != controller.snapshot.collection_filter:
        controller.set_preferences(collection_filter=collection_id)
    controller.load_queue(products)
    return _out(controller)


@router.post("/select-product")
def select_product(
    payload: Dict[str, Any] = Depends(read_payload),
    controller: QueueController = Depends(get_queue_controller),
):
    controller.select_product(_int_field(payload, "index"))
    return _out(controller)


@router.post("/select-image")
def select_image(
    payload: Dict[str, Any] = Depends(read_payload),
    controller: QueueController = Depends(get_queue_controller),
):
    controller.select_image(_int_field(payload, "index"))
    return _out(controller)


@router.post("/begin-upload")
def begin_upload(controller: QueueController = Depends(get_queue_controller)):
    controller.begin_upload()
    return _out(controller)


'''
POST /queue/upload-result
   上传结束后回填；productId 不是当前商品时结果被丢弃（applied=false）
'''
@router.post("/upload-result")
def upload_result(
    payload: Dict[str, Any] = Depends(read_payload),
    controller: QueueController = Depends(get_queue_controller),
):
    applied = controller.apply_upload_result(
        payload.get("productId"),
        success=parse_bool(payload.get("success"), default=True),
        pinterest_url=payload.get("pinUrl"),
    )
    return {**_out(controller), "applied": applied}


@router.post("/advance")
def advance(controller: QueueController = Depends(get_queue_controller)):
    controller.advance()
    return {**_out(controller), "queueComplete": controller.snapshot.queue_complete}


@router.post("/close")
def close_modal(controller: QueueController = Depends(get_queue_controller)):
    controller.close_modal()
    return _out(controller)


@router.post("/preferences")
def set_preferences(
    payload: Dict[str, Any] = Depends(read_payload),
    controller: QueueController = Depends(get_queue_controller),
):
    prefs: Dict[str, Any] = {}
    if "activeTab" in payload:
        prefs["active_tab"] = _int_field(payload, "activeTab")
    if "urlMode" in payload:
        if payload["urlMode"] not in ("default", "custom"):
            raise ValidationError("urlMode must be 'default' or 'custom'")
        prefs["url_mode"] = payload["urlMode"]
    if "customDomain" in payload:
        prefs["custom_domain"] = payload["customDomain"] or None
    if "collectionFilter" in payload:
        prefs["collection_filter"] = payload["collectionFilter"] or None
    if "watermark" in payload:
        prefs["watermark"] = parse_json_field(payload["watermark"], "watermark")
    controller.set_preferences(**prefs)
    return _out(controller)
