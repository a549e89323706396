# pinned_products database repository

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.db.model.pinned_product import PinnedProduct, PIN_STATUSES


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PinnedProductMeta:
    product_handle: Optional[str] = None
    title: Optional[str] = None
    image_url: Optional[str] = None


# ---------- Mutations ----------
def upsert_status(
    db: Session,
    shop: str,
    product_id: str,
    status: str,
    meta: Optional[PinnedProductMeta] = None,
) -> PinnedProduct:
    """
    整条替换：同一事务内先删掉 (shop, product_id) 的所有旧记录，再插一条新的。
    状态变化（PUBLISHED → IGNORED）是整条记录替换，不做字段级合并。
    """
    _validate_status(status)
    meta = meta or PinnedProductMeta()

    try:
        db.execute(
            delete(PinnedProduct)
            .where(PinnedProduct.shop == shop, PinnedProduct.product_id == product_id)
        )
        row = PinnedProduct(
            shop=shop,
            product_id=product_id,
            product_handle=meta.product_handle,
            title=meta.title,
            image_url=meta.image_url,
            status=status,
            created_at=datetime.now(timezone.utc),
        )
        db.add(row)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(row)
    logger.info("pinned.upsert shop=%s product=%s status=%s", shop, product_id, status)
    return row


def clear_status(db: Session, shop: str, product_id: str) -> int:
    """删除记录，商品回到"未处理"。返回删除条数。"""
    res = db.execute(
        delete(PinnedProduct)
        .where(PinnedProduct.shop == shop, PinnedProduct.product_id == product_id)
    )
    db.commit()
    return res.rowcount or 0


def clear_statuses(db: Session, shop: str, product_ids: Iterable[str]) -> int:
    ids = [p for p in product_ids if p]
    if not ids:
        return 0
    res = db.execute(
        delete(PinnedProduct)
        .where(PinnedProduct.shop == shop, PinnedProduct.product_id.in_(ids))
    )
    db.commit()
    return res.rowcount or 0


# ---------- Query ----------
def list_by_status(db: Session, shop: str, status: str) -> list[PinnedProduct]:
    """按状态列出，最新的在前。"""
    _validate_status(status)
    stmt = (
        select(PinnedProduct)
        .where(PinnedProduct.shop == shop, PinnedProduct.status == status)
        .order_by(PinnedProduct.created_at.desc(), PinnedProduct.id.desc())
    )
    return list(db.scalars(stmt))


def get_status(db: Session, shop: str, product_id: str) -> Optional[PinnedProduct]:
    stmt = (
        select(PinnedProduct)
        .where(PinnedProduct.shop == shop, PinnedProduct.product_id == product_id)
        .order_by(PinnedProduct.id.desc())
    )
    return db.scalars(stmt).first()


# ---------- Validation ----------
def _validate_status(status: str) -> None:
    if status not in PIN_STATUSES:
        raise ValueError(f"status must be one of {list(PIN_STATUSES)}")
