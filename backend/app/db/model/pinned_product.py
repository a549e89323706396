from __future__ import annotations
from typing import Optional

from sqlalchemy import CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, CreatedAtMixin


PIN_STATUS_PUBLISHED = "PUBLISHED"
PIN_STATUS_IGNORED = "IGNORED"
PIN_STATUSES = (PIN_STATUS_PUBLISHED, PIN_STATUS_IGNORED)


"""
  pinned_products 表：商品在 Pinterest 流程里的处理结果
  - (shop, product_id) 没有唯一约束，靠 repo 里 "同事务先删后插" 保证只有一条当前记录
  - 记录被删除 = 商品回到"未处理"
"""
class PinnedProduct(CreatedAtMixin, Base):

    __tablename__ = "pinned_products"

    id:             Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop:           Mapped[str] = mapped_column(String(255), nullable=False)
    product_id:     Mapped[str] = mapped_column(String(128), nullable=False)        # gid://shopify/Product/123
    product_handle: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    title:          Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    image_url:      Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status:         Mapped[str] = mapped_column(String(16), nullable=False)         # PUBLISHED / IGNORED

    __table_args__ = (
        CheckConstraint("status IN ('PUBLISHED','IGNORED')", name="status"),
        Index("ix_pinned_products_shop_product", "shop", "product_id"),
        Index("ix_pinned_products_shop_status", "shop", "status", "created_at"),
    )
