# 上传裁剪后的图片到 Shopify Files，并给商品打 Published 标签

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.integrations.shopify.shopify_client import ShopifyClient
from app.services.auth_service import ShopContext, get_current_shop
from app.services.publish_service import upload_and_tag
from app.api.v1.deps import get_shopify_client, parse_float, parse_json_field, read_payload


logger = logging.getLogger(__name__)

router = APIRouter(tags=["upload"])


'''
POST /upload
   body（JSON 或表单）:
     image          data URL（浏览器里已裁好）
     或 sourceUrl + crop{x,y,width,height} [+ rotation, flip, watermark] 由服务端合成
     productId      可选；有就打标签 + 写状态表 + 生成 pin 链接
     urlMode / customDomain  pin 链接的落地页规则
'''
@router.post("/upload")
def upload_image(
    payload: Dict[str, Any] = Depends(read_payload),
    ctx: ShopContext = Depends(get_current_shop),
    client: ShopifyClient = Depends(get_shopify_client),
    db: Session = Depends(get_db),
):
    result = upload_and_tag(
        db,
        client,
        ctx.shop,
        image=payload.get("image"),
        source_url=payload.get("sourceUrl"),
        crop=parse_json_field(payload.get("crop"), "crop"),
        rotation=parse_float(payload.get("rotation"), "rotation"),
        flip=parse_json_field(payload.get("flip"), "flip"),
        watermark=parse_json_field(payload.get("watermark"), "watermark"),
        product_id=payload.get("productId"),
        url_mode=payload.get("urlMode") or "default",
        custom_domain=payload.get("customDomain"),
    )
    return {"success": True, **result}
