from __future__ import annotations

import json
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.model.shop_settings import ShopSettings
from app.utils.serialization import to_jsonable


def get_row(db: Session, shop: str) -> Optional[ShopSettings]:
    return db.scalars(select(ShopSettings).where(ShopSettings.shop == shop)).first()


def get_shop_settings(db: Session, shop: str) -> Optional[Dict[str, Any]]:
    row = get_row(db, shop)
    if row is None:
        return None
    try:
        data = json.loads(row.settings or "{}")
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def update_shop_settings(db: Session, shop: str, new_settings: Dict[str, Any]) -> Dict[str, Any]:
    """读-合并-写：新的部分字段覆盖旧值，其余键保留。"""
    existing = get_shop_settings(db, shop) or {}
    merged = {**existing, **to_jsonable(new_settings or {})}
    payload = json.dumps(merged, ensure_ascii=False)

    row = get_row(db, shop)
    if row is not None:
        row.settings = payload
        db.commit()
        return merged

    try:
        db.add(ShopSettings(shop=shop, settings=payload))
        db.commit()
    except IntegrityError:
        # 并发下另一请求先插入了：回滚后按更新处理
        db.rollback()
        row = get_row(db, shop)
        if row is None:
            raise
        existing = get_shop_settings(db, shop) or {}
        merged = {**existing, **to_jsonable(new_settings or {})}
        row.settings = json.dumps(merged, ensure_ascii=False)
        db.commit()
    return merged
