# 路由共用依赖：请求体解析 / 当前店铺的 Shopify client

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from fastapi import Depends, Request

from app.core.errors import ValidationError
from app.integrations.shopify.shopify_client import ShopifyClient
from app.services.auth_service import ShopContext, get_current_shop


'''
JSON 或表单都收（前端 fetcher.submit 两种 encType 都用过）
   - application/json → dict
   - x-www-form-urlencoded / multipart → 普通字段转 dict（同名字段取最后一个）
   - 空 body → {}
'''
async def read_payload(request: Request) -> Dict[str, Any]:
    ctype = (request.headers.get("content-type") or "").lower()

    if "application/json" in ctype:
        raw = await request.body()
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ValidationError("request body is not valid JSON") from e
        if not isinstance(data, dict):
            raise ValidationError("request body must be a JSON object")
        return data

    if "form" in ctype:
        form = await request.form()
        return {k: v for k, v in form.items() if isinstance(v, str)}

    return {}


def get_shopify_client(ctx: ShopContext = Depends(get_current_shop)) -> ShopifyClient:
    return ShopifyClient(shop=ctx.shop)


def parse_json_field(value: Any, name: str) -> Optional[Any]:
    """表单里嵌套对象（crop / flip / watermark）是 JSON 字符串。"""
    if value is None or value == "":
        return None
    if isinstance(value, (dict, list)):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a JSON object") from e


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def parse_float(value: Any, name: str, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a number") from e
