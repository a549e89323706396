import json

import pytest

from app.core.config import settings
from app.core.errors import ValidationError
from app.services.session_queue import (
    STORAGE_PREFIX,
    InMemoryStorage,
    JsonFileStorage,
    QueueController,
    QueueState,
    ShopSettingsStorage,
    load_snapshot,
    storage_for_shop,
)
from conftest import SHOP


def _product(pid: str, n_images: int, tags=None) -> dict:
    return {
        "id": f"gid://shopify/Product/{pid}",
        "title": f"Product {pid}",
        "handle": f"product-{pid}",
        "tags": list(tags or []),
        "images": [{"id": f"img-{pid}-{i}", "originalSrc": f"https://cdn/{pid}/{i}.jpg"} for i in range(n_images)],
    }


@pytest.fixture()
def controller() -> QueueController:
    ctl = QueueController(InMemoryStorage())
    ctl.load_queue([_product("1", 3), _product("2", 2)])
    return ctl


def test_load_queue_selects_first_product(controller: QueueController):
    assert controller.state == QueueState.PRODUCT_SELECTED
    assert controller.current_product["id"] == "gid://shopify/Product/1"
    assert controller.snapshot.selected_image is None


def test_load_queue_drops_products_without_images():
    ctl = QueueController(InMemoryStorage())
    ctl.load_queue([_product("1", 0), _product("2", 1)])
    assert [p["id"] for p in ctl.snapshot.queue] == ["gid://shopify/Product/2"]


def test_load_empty_queue_is_empty_state():
    ctl = QueueController(InMemoryStorage())
    ctl.load_queue([])
    assert ctl.state == QueueState.EMPTY
    assert ctl.snapshot.queue_complete is False


# 3 张图、当前在第 1 张 → advance 到第 2 张，商品不变
def test_advance_moves_to_next_image_of_same_product(controller: QueueController):
    controller.select_image(0)
    controller.advance()
    assert controller.current_product["id"] == "gid://shopify/Product/1"
    assert controller.snapshot.image_index == 1
    assert controller.snapshot.selected_image["id"] == "img-1-1"
    assert controller.state == QueueState.CROPPING


def test_advance_from_last_image_moves_to_next_product_first_image(controller: QueueController):
    controller.select_image(2)
    controller.advance()
    assert controller.current_product["id"] == "gid://shopify/Product/2"
    assert controller.snapshot.image_index == 0
    assert controller.snapshot.selected_image["id"] == "img-2-0"


# 最后一个商品的最后一张图 → EMPTY + queue_complete
def test_advance_past_last_image_of_last_product_is_empty(controller: QueueController):
    controller.select_product(1)
    controller.select_image(1)
    controller.advance()
    assert controller.state == QueueState.EMPTY
    assert controller.snapshot.queue_complete is True
    assert controller.current_product is None


def test_upload_result_marks_product_published_once(controller: QueueController):
    controller.select_image(0)
    pid = controller.current_product["id"]

    controller.begin_upload()
    assert controller.apply_upload_result(pid, success=True, pinterest_url="https://pin") is True
    assert controller.state == QueueState.UPLOADED
    assert controller.snapshot.pinterest_url == "https://pin"

    # 再来一次也不会重复加标签
    controller.select_image(1)
    controller.begin_upload()
    controller.apply_upload_result(pid, success=True)
    assert controller.current_product["tags"].count(settings.PIN_TAG_PUBLISHED) == 1


def test_stale_upload_result_is_discarded(controller: QueueController):
    controller.select_image(0)
    controller.begin_upload()
    stale_id = controller.current_product["id"]

    controller.select_product(1)
    assert controller.apply_upload_result(stale_id, success=True) is False
    assert controller.state == QueueState.PRODUCT_SELECTED
    assert settings.PIN_TAG_PUBLISHED not in controller.current_product["tags"]


def test_failed_upload_returns_to_cropping(controller: QueueController):
    controller.select_image(0)
    controller.begin_upload()
    controller.apply_upload_result(controller.current_product["id"], success=False)
    assert controller.state == QueueState.CROPPING
    assert controller.snapshot.pending_upload_product_id is None


def test_begin_upload_requires_cropping(controller: QueueController):
    with pytest.raises(ValidationError):
        controller.begin_upload()


def test_select_image_out_of_range(controller: QueueController):
    with pytest.raises(ValidationError):
        controller.select_image(9)


# ---------- 持久化 ----------
def test_every_change_is_persisted_under_prefix():
    storage = InMemoryStorage()
    ctl = QueueController(storage)
    ctl.load_queue([_product("1", 2)])

    assert storage.data, "snapshot should be written on load"
    assert all(k.startswith(STORAGE_PREFIX) for k in storage.data)
    assert json.loads(storage.data[STORAGE_PREFIX + "state"]) == "product_selected"

    ctl.select_image(1)
    assert json.loads(storage.data[STORAGE_PREFIX + "imageIndex"]) == 1
    assert json.loads(storage.data[STORAGE_PREFIX + "isModalOpen"]) is True


def test_rehydration_takes_precedence_over_default_loader():
    storage = InMemoryStorage()
    first = QueueController(storage)
    first.load_queue([_product("1", 3)])
    first.select_image(2)

    called = []

    def loader():
        called.append(True)
        return [_product("9", 1)]

    second = QueueController(storage, default_loader=loader)
    assert second.rehydrated is True
    assert called == []
    assert second.current_product["id"] == "gid://shopify/Product/1"
    assert second.snapshot.image_index == 2
    assert second.state == QueueState.CROPPING


def test_default_loader_used_when_storage_is_empty():
    ctl = QueueController(InMemoryStorage(), default_loader=lambda: [_product("7", 1)])
    assert ctl.rehydrated is False
    assert ctl.current_product["id"] == "gid://shopify/Product/7"


def test_preferences_round_trip_through_json_file(tmp_path):
    path = tmp_path / "session.json"
    ctl = QueueController(JsonFileStorage(str(path)))
    ctl.set_preferences(url_mode="custom", custom_domain="https://shop.example.com", active_tab=2)

    restored = QueueController(JsonFileStorage(str(path)))
    assert restored.snapshot.url_mode == "custom"
    assert restored.snapshot.custom_domain == "https://shop.example.com"
    assert restored.snapshot.active_tab == 2


def test_unknown_preference_rejected(controller: QueueController):
    with pytest.raises(ValidationError):
        controller.set_preferences(colour="red")


def test_shop_settings_storage_keeps_other_settings(db_session):
    from app.repository.shop_settings_repo import get_shop_settings, update_shop_settings

    update_shop_settings(db_session, SHOP, {"watermark": {"enabled": False}})
    ctl = QueueController(ShopSettingsStorage(db_session, SHOP))
    ctl.load_queue([_product("1", 1)])

    stored = get_shop_settings(db_session, SHOP)
    assert stored["watermark"] == {"enabled": False}
    assert load_snapshot(ShopSettingsStorage(db_session, SHOP)).queue[0]["id"] == "gid://shopify/Product/1"


class _FailingStorage(InMemoryStorage):
    """armed 之后任何一次写入都失败（模拟写库时连接断开）。"""

    def __init__(self) -> None:
        super().__init__()
        self.armed = False
        self.writes = 0

    def set_many(self, items):
        if self.armed:
            raise OSError("storage went away")
        self.writes += 1
        super().set_many(items)


# 写入中途失败：存储里仍是上一次完整的快照，恢复出来的状态前后一致
def test_failed_save_leaves_previous_snapshot_intact():
    storage = _FailingStorage()
    ctl = QueueController(storage)
    ctl.load_queue([_product("1", 1)])
    ctl.select_image(0)

    storage.armed = True
    with pytest.raises(OSError):
        ctl.advance()

    restored = load_snapshot(storage)
    assert restored.state == QueueState.CROPPING
    assert restored.queue[0]["id"] == "gid://shopify/Product/1"
    assert restored.image_index == 0
    assert restored.queue_complete is False


def test_each_transition_is_one_write():
    storage = _FailingStorage()
    ctl = QueueController(storage)
    ctl.load_queue([_product("1", 2)])
    ctl.select_image(0)
    ctl.advance()
    assert storage.writes == 3


def test_contradictory_snapshot_is_not_rehydrated():
    storage = InMemoryStorage({
        STORAGE_PREFIX + "state": json.dumps("empty"),
        STORAGE_PREFIX + "queue": json.dumps([_product("1", 1)]),
    })
    assert load_snapshot(storage) is None

    storage = InMemoryStorage({
        STORAGE_PREFIX + "state": json.dumps("cropping"),
        STORAGE_PREFIX + "queue": json.dumps([_product("1", 1)]),
        STORAGE_PREFIX + "queueIndex": json.dumps(4),
    })
    ctl = QueueController(storage)
    assert ctl.rehydrated is False
    assert ctl.state == QueueState.EMPTY


def test_shop_settings_storage_saves_snapshot_in_one_update(db_session, monkeypatch):
    from app.services import session_queue

    calls = []
    real = session_queue.update_shop_settings

    def counting(db, shop, partial):
        calls.append(sorted(partial))
        return real(db, shop, partial)

    monkeypatch.setattr(session_queue, "update_shop_settings", counting)
    QueueController(ShopSettingsStorage(db_session, SHOP)).load_queue([_product("1", 1)])

    assert len(calls) == 1
    assert len(calls[0]) == len(session_queue.SNAPSHOT_KEYS)


def test_file_store_selected_by_setting(db_session, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "QUEUE_SNAPSHOT_STORE", "file")
    monkeypatch.setattr(settings, "QUEUE_SNAPSHOT_DIR", str(tmp_path / "sessions"))

    storage = storage_for_shop(db_session, SHOP)
    assert isinstance(storage, JsonFileStorage)
    QueueController(storage).load_queue([_product("1", 1)])

    assert (tmp_path / "sessions" / f"{SHOP}.json").exists()
    assert isinstance(storage_for_shop(db_session, "other.myshopify.com"), JsonFileStorage)

    monkeypatch.setattr(settings, "QUEUE_SNAPSHOT_STORE", "shop_settings")
    assert isinstance(storage_for_shop(db_session, SHOP), ShopSettingsStorage)
