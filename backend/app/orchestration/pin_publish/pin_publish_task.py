from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from celery import shared_task

from app.core.config import settings
from app.core.celery_app import celery_app  # noqa: F401  让 shared_task 绑定到配置好的 app
from app.db.session import session_scope
from app.integrations.pinterest import PinterestClient
from app.integrations.shopify.shopify_client import ShopifyClient
from app.repository.pinned_product_repo import PinnedProductMeta
from app.services.publish_service import decode_image_input, publish_to_pinterest


logger = logging.getLogger(__name__)


"""
  调试开关：True 时在请求线程内同步跑完（媒体轮询会占住请求直到 Pinterest 处理完）。
"""
def _inline_tasks_enabled() -> bool:
    return bool(getattr(settings, "SYNC_TASKS_INLINE", True))



'''
Pinterest 直发任务
   - image 是 data URL（Celery 参数只能是 JSON）
   - register → upload → poll → create pin；成功后商品打 Published 标签 + 写状态表
   - 失败直接抛出，不重试（任务结果里能看到异常）
'''
@shared_task(name="app.orchestration.pin_publish.publish_pin")
def publish_pin(
    shop: str,
    board_id: str,
    title: str,
    description: str,
    link: str,
    image: str,
    product_id: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> dict:

    logger.info("pin_publish.start shop=%s board=%s product=%s", shop, board_id, product_id)
    image_bytes = decode_image_input(image)

    with session_scope() as db:
        result = publish_to_pinterest(
            db,
            ShopifyClient(shop=shop),
            PinterestClient(),
            shop,
            board_id=board_id,
            title=title,
            description=description,
            link=link,
            image_bytes=image_bytes,
            product_id=product_id,
            meta=PinnedProductMeta(**(meta or {})),
        )

    logger.info("pin_publish.done shop=%s pin_id=%s", shop, (result.get("pin") or {}).get("id"))
    return result


def submit_publish_pin(**kwargs: Any) -> dict:
    """API 入口：inline 时直接返回 pin，否则返回 task_id。"""
    if _inline_tasks_enabled():
        return {"inline": True, **publish_pin.run(**kwargs)}
    async_result = publish_pin.apply_async(kwargs=kwargs, queue="pinterest")
    return {"inline": False, "taskId": async_result.id}
