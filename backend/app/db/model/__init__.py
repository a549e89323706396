
# 聚合导入所有模型，供 Alembic 发现

from .pinned_product import (
    PinnedProduct,
    PIN_STATUS_PUBLISHED,
    PIN_STATUS_IGNORED,
    PIN_STATUSES,
)
from .shop_settings import ShopSettings

__all__ = [
    "PinnedProduct", "PIN_STATUS_PUBLISHED", "PIN_STATUS_IGNORED", "PIN_STATUSES",
    "ShopSettings",
]
