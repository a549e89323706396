# Pinterest 直发：boards 列表 + 发 pin

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.db.session import get_db
from app.integrations.pinterest import PinterestClient
from app.integrations.shopify.shopify_client import ShopifyClient
from app.orchestration.pin_publish.pin_publish_task import submit_publish_pin
from app.services.auth_service import ShopContext, get_current_shop
from app.services.pin_link import build_destination_url, build_pin_description
from app.services.publish_service import composite_from_source
from app.utils.serialization import to_data_url
from app.api.v1.deps import get_shopify_client, parse_float, parse_json_field, read_payload


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pinterest", tags=["pinterest"])


def get_pinterest_client() -> PinterestClient:
    return PinterestClient()


@router.get("/boards")
def list_boards(pinterest: PinterestClient = Depends(get_pinterest_client)):
    return {"success": True, "boards": pinterest.list_boards()}



'''
POST /pinterest/pins
   boardId 必填；图片：image(data URL) 或 sourceUrl + crop
   有 productId 时，link / description / title 缺省从商品推出来
   SYNC_TASKS_INLINE=True 时同步返回 pin，否则返回 taskId
'''
@router.post("/pins")
def create_pin(
    payload: Dict[str, Any] = Depends(read_payload),
    ctx: ShopContext = Depends(get_current_shop),
    client: ShopifyClient = Depends(get_shopify_client),
    db: Session = Depends(get_db),
):
    board_id = payload.get("boardId")
    if not board_id:
        raise ValidationError("No board selected")

    image = payload.get("image")
    crop = parse_json_field(payload.get("crop"), "crop")
    if not image and payload.get("sourceUrl") and crop:
        image = to_data_url(composite_from_source(
            db, ctx.shop, payload["sourceUrl"], crop,
            rotation=parse_float(payload.get("rotation"), "rotation"),
            flip=parse_json_field(payload.get("flip"), "flip"),
            watermark=parse_json_field(payload.get("watermark"), "watermark"),
        ))
    if not image:
        raise ValidationError("No image provided")

    product_id = payload.get("productId")
    product: Dict[str, Any] = {}
    if product_id and not (payload.get("link") and payload.get("description") and payload.get("title")):
        product = client.get_product(product_id) or {}

    link = payload.get("link") or build_destination_url(
        product, ctx.shop, payload.get("urlMode") or "default", payload.get("customDomain"))
    result = submit_publish_pin(
        shop=ctx.shop,
        board_id=board_id,
        title=payload.get("title") or product.get("title") or "",
        description=payload.get("description") or build_pin_description(product),
        link=link,
        image=image,
        product_id=product_id,
        meta={
            "product_handle": product.get("handle"),
            "title": product.get("title") or payload.get("title"),
            "image_url": product.get("image"),
        } if product_id else None,
    )
    return {"success": True, **result}
