from __future__ import annotations

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, TimestampMixin


"""
  shop_settings 表：每个店铺一行，settings 为 JSON 文本（水印、链接偏好、队列快照等）
"""
class ShopSettings(TimestampMixin, Base):

    __tablename__ = "shop_settings"

    id:       Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop:     Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    settings: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
