# 店铺设置（水印 / 链接规则等），读-合并-写

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.db.session import get_db
from app.repository.shop_settings_repo import get_shop_settings, update_shop_settings
from app.services.auth_service import ShopContext, get_current_shop
from app.services.session_queue import STORAGE_PREFIX
from app.api.v1.deps import read_payload


router = APIRouter(prefix="/settings", tags=["settings"])


# 队列快照也存在同一个 blob 里（pinpublish:*），不对外返回
def _public(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {k: v for k, v in (data or {}).items() if not k.startswith(STORAGE_PREFIX)}


@router.get("")
def read_settings(
    ctx: ShopContext = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    return _public(get_shop_settings(db, ctx.shop))


@router.post("")
def write_settings(
    payload: Dict[str, Any] = Depends(read_payload),
    ctx: ShopContext = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    payload = _public(payload)
    if not payload:
        raise ValidationError("settings payload is empty")
    merged = update_shop_settings(db, ctx.shop, payload)
    return {"success": True, "settings": _public(merged)}
