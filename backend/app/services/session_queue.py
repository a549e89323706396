"""
工作队列 / 会话状态机

  EMPTY → PRODUCT_SELECTED → CROPPING → UPLOADED → (advance) → CROPPING | 下一个商品 | EMPTY

  - 每次状态变化都把整个 SessionSnapshot 写进存储（键统一加 "pinpublish:" 前缀）
  - 构造时先从存储恢复；恢复成功就不再走默认的加载逻辑
  - 上传是"先乐观、后对账"：begin_upload 记下目标商品，apply_upload_result 回来时
    如果当前商品已经换了，这个结果直接丢弃
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ValidationError
from app.repository.shop_settings_repo import get_shop_settings, update_shop_settings


logger = logging.getLogger(__name__)

STORAGE_PREFIX = "pinpublish:"


class QueueState(str, Enum):
    EMPTY = "empty"
    PRODUCT_SELECTED = "product_selected"
    CROPPING = "cropping"
    UPLOADED = "uploaded"


class SessionSnapshot(BaseModel):
    state: QueueState = QueueState.EMPTY
    queue: List[Dict[str, Any]] = Field(default_factory=list)
    queue_index: int = 0
    image_index: Optional[int] = None
    active_tab: int = 0
    is_modal_open: bool = False
    selected_image: Optional[Dict[str, Any]] = None
    pinterest_url: Optional[str] = None
    url_mode: str = "default"
    custom_domain: Optional[str] = None
    collection_filter: Optional[str] = None
    watermark: Optional[Dict[str, Any]] = None
    pending_upload_product_id: Optional[str] = None
    queue_complete: bool = False

    @model_validator(mode="after")
    def _check_consistent(self) -> "SessionSnapshot":
        # 只在从存储恢复时校验；EMPTY 不能带队列，其它状态必须指向队列里的商品
        if self.state == QueueState.EMPTY:
            if self.queue:
                raise ValueError("empty state with a non-empty queue")
        elif not 0 <= self.queue_index < len(self.queue):
            raise ValueError(f"state {self.state.value} points outside the queue")
        return self


# 快照字段 → 存储键（不含前缀）
SNAPSHOT_KEYS: Dict[str, str] = {
    "state": "state",
    "queue": "queue",
    "queue_index": "queueIndex",
    "image_index": "imageIndex",
    "active_tab": "activeTab",
    "is_modal_open": "isModalOpen",
    "selected_image": "selectedImage",
    "pinterest_url": "pinterestUrl",
    "url_mode": "urlMode",
    "custom_domain": "customDomain",
    "collection_filter": "collectionFilter",
    "watermark": "watermark",
    "pending_upload_product_id": "pendingUploadProductId",
    "queue_complete": "queueComplete",
}


# ---------------- 存储 ----------------
# 整个快照一次写入：set_many 要么全部落盘，要么一个键都不动

class SnapshotStorage(Protocol):
    def get_many(self, keys: Iterable[str]) -> Dict[str, str]: ...
    def set_many(self, items: Mapping[str, str]) -> None: ...


class InMemoryStorage:
    """测试 / 单进程用。"""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    def get_many(self, keys: Iterable[str]) -> Dict[str, str]:
        return {k: self.data[k] for k in keys if k in self.data}

    def set_many(self, items: Mapping[str, str]) -> None:
        self.data.update(items)


class JsonFileStorage:
    """
    每个店铺一个 JSON 文件（QUEUE_SNAPSHOT_STORE=file 时使用，本地不连库调试）。
    写入走临时文件 + os.replace，读到的永远是某一次完整写入。
    """

    def __init__(self, path: str) -> None:
        self.path = path

    @classmethod
    def for_shop(cls, directory: str, shop: str) -> "JsonFileStorage":
        safe = "".join(c if c.isalnum() or c in "-._" else "_" for c in shop) or "default"
        return cls(os.path.join(directory, f"{safe}.json"))

    def _read_all(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except ValueError:
            logger.warning("session.storage.corrupt path=%s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def get_many(self, keys: Iterable[str]) -> Dict[str, str]:
        data = self._read_all()
        return {k: data[k] for k in keys if k in data}

    def set_many(self, items: Mapping[str, str]) -> None:
        data = self._read_all()
        data.update(items)
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise


class ShopSettingsStorage:
    """存进 shop_settings 的 JSON（和其它设置共用一行，靠前缀区分）；一次快照 = 一次读-合并-写。"""

    def __init__(self, db: Session, shop: str) -> None:
        self.db = db
        self.shop = shop

    def get_many(self, keys: Iterable[str]) -> Dict[str, str]:
        stored = get_shop_settings(self.db, self.shop) or {}
        return {k: stored[k] for k in keys if k in stored}

    def set_many(self, items: Mapping[str, str]) -> None:
        update_shop_settings(self.db, self.shop, dict(items))


def storage_for_shop(db: Session, shop: str) -> SnapshotStorage:
    if settings.QUEUE_SNAPSHOT_STORE == "file":
        return JsonFileStorage.for_shop(settings.QUEUE_SNAPSHOT_DIR, shop)
    return ShopSettingsStorage(db, shop)


def save_snapshot(storage: SnapshotStorage, snapshot: SessionSnapshot) -> None:
    data = snapshot.model_dump(mode="json")
    storage.set_many({
        STORAGE_PREFIX + key: json.dumps(data[field], ensure_ascii=False)
        for field, key in SNAPSHOT_KEYS.items()
    })


def load_snapshot(storage: SnapshotStorage) -> Optional[SessionSnapshot]:
    """存储里一个键都没有时返回 None；有就按 schema 校验，坏数据 / 前后矛盾的快照当作没有。"""
    raw_items = storage.get_many(STORAGE_PREFIX + key for key in SNAPSHOT_KEYS.values())
    data: Dict[str, Any] = {}
    for field, key in SNAPSHOT_KEYS.items():
        raw = raw_items.get(STORAGE_PREFIX + key)
        if raw is None:
            continue
        try:
            data[field] = json.loads(raw)
        except ValueError:
            logger.warning("session.snapshot.bad_value key=%s", key)
    if not data:
        return None
    try:
        return SessionSnapshot.model_validate(data)
    except PydanticValidationError as e:
        logger.warning("session.snapshot.invalid err=%s", e)
        return None


# ---------------- 状态机 ----------------

class QueueController:

    def __init__(
        self,
        storage: SnapshotStorage,
        default_loader: Optional[Callable[[], List[Dict[str, Any]]]] = None,
    ) -> None:
        self.storage = storage
        snapshot = load_snapshot(storage)
        self.rehydrated = snapshot is not None
        if snapshot is not None:
            self.snapshot = snapshot
        else:
            self.snapshot = SessionSnapshot()
            if default_loader is not None:
                self.load_queue(default_loader())

    # ---------- 读取 ----------
    @property
    def state(self) -> QueueState:
        return self.snapshot.state

    @property
    def current_product(self) -> Optional[Dict[str, Any]]:
        s = self.snapshot
        if 0 <= s.queue_index < len(s.queue):
            return s.queue[s.queue_index]
        return None

    def _images(self) -> List[Dict[str, Any]]:
        return list((self.current_product or {}).get("images") or [])

    def _persist(self) -> SessionSnapshot:
        save_snapshot(self.storage, self.snapshot)
        logger.debug("session.persist state=%s queue_index=%s image_index=%s",
            self.snapshot.state.value, self.snapshot.queue_index, self.snapshot.image_index)
        return self.snapshot

    # ---------- 迁移 ----------
    def load_queue(self, products: List[Dict[str, Any]]) -> SessionSnapshot:
        s = self.snapshot
        s.queue = [p for p in (products or []) if p.get("images")]
        s.queue_complete = False
        if s.queue:
            self._select_product(0)
        else:
            self._reset_to_empty(complete=False)
        return self._persist()

    def select_product(self, index: int) -> SessionSnapshot:
        if not 0 <= index < len(self.snapshot.queue):
            raise ValidationError(f"product index out of range: {index}")
        self._select_product(index)
        return self._persist()

    def select_image(self, index: int) -> SessionSnapshot:
        if self.current_product is None:
            raise ValidationError("no product selected")
        images = self._images()
        if not 0 <= index < len(images):
            raise ValidationError(f"image index out of range: {index}")
        self._select_image(index)
        return self._persist()

    def begin_upload(self) -> SessionSnapshot:
        s = self.snapshot
        if s.state != QueueState.CROPPING or self.current_product is None:
            raise ValidationError("no image is being cropped")
        s.pending_upload_product_id = self.current_product.get("id")
        return self._persist()

    def apply_upload_result(
        self,
        product_id: Optional[str],
        *,
        success: bool,
        pinterest_url: Optional[str] = None,
    ) -> bool:
        """返回 False 表示结果已过期（不是当前商品 / 没有在等的上传），被丢弃。"""
        s = self.snapshot
        current = self.current_product
        if not product_id or current is None or current.get("id") != product_id \
                or s.pending_upload_product_id != product_id:
            logger.info("session.upload.stale product=%s current=%s", product_id, (current or {}).get("id"))
            return False

        s.pending_upload_product_id = None
        if success:
            tags = list(current.get("tags") or [])
            if settings.PIN_TAG_PUBLISHED not in tags:
                tags.append(settings.PIN_TAG_PUBLISHED)
            current["tags"] = tags
            s.pinterest_url = pinterest_url
            s.state = QueueState.UPLOADED
        else:
            s.state = QueueState.CROPPING
        self._persist()
        return True

    def advance(self) -> SessionSnapshot:
        """
        当前商品还有下一张图 → 下一张
        否则下一个商品的第一张
        队列走完 → EMPTY + queue_complete
        """
        s = self.snapshot
        images = self._images()
        next_image = 0 if s.image_index is None else s.image_index + 1

        if self.current_product is not None and next_image < len(images):
            self._select_image(next_image)
        elif s.queue_index + 1 < len(s.queue):
            self._select_product(s.queue_index + 1)
            self._select_image(0)
        else:
            self._reset_to_empty(complete=True)
            logger.info("session.queue.complete")
        return self._persist()

    def close_modal(self) -> SessionSnapshot:
        s = self.snapshot
        s.is_modal_open = False
        s.pinterest_url = None
        s.selected_image = None
        s.image_index = None
        if self.current_product is not None:
            s.state = QueueState.PRODUCT_SELECTED
        return self._persist()

    def set_preferences(self, **prefs: Any) -> SessionSnapshot:
        allowed = {"active_tab", "url_mode", "custom_domain", "collection_filter", "watermark"}
        unknown = set(prefs) - allowed
        if unknown:
            raise ValidationError(f"unknown preference(s): {sorted(unknown)}")
        for key, value in prefs.items():
            setattr(self.snapshot, key, value)
        return self._persist()

    # ---------- 内部 ----------
    def _select_product(self, index: int) -> None:
        s = self.snapshot
        s.queue_index = index
        s.image_index = None
        s.selected_image = None
        s.pinterest_url = None
        s.pending_upload_product_id = None
        s.is_modal_open = False
        s.state = QueueState.PRODUCT_SELECTED

    def _select_image(self, index: int) -> None:
        s = self.snapshot
        s.image_index = index
        s.selected_image = self._images()[index]
        s.pinterest_url = None
        s.pending_upload_product_id = None
        s.is_modal_open = True
        s.state = QueueState.CROPPING

    def _reset_to_empty(self, *, complete: bool) -> None:
        s = self.snapshot
        s.queue = []
        s.queue_index = 0
        s.image_index = None
        s.selected_image = None
        s.pinterest_url = None
        s.pending_upload_product_id = None
        s.is_modal_open = False
        s.state = QueueState.EMPTY
        s.queue_complete = complete
