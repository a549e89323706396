from urllib.parse import parse_qs, urlparse

import pytest

from app.core.errors import ValidationError
from app.db.model.pinned_product import PIN_STATUS_IGNORED, PIN_STATUS_PUBLISHED
from app.repository import pinned_product_repo as repo
from app.repository.shop_settings_repo import update_shop_settings
from app.services import publish_service
from app.utils.serialization import to_data_url
from conftest import SHOP, make_image_bytes


PID = "gid://shopify/Product/1"
PRODUCT = {
    "id": PID,
    "title": "Mala",
    "handle": "mala",
    "descriptionHtml": "<p>Hand made</p>",
    "onlineStoreUrl": None,
    "image": "https://cdn/orig.jpg",
}


def test_upload_without_product_only_uploads(db_session, fake_shopify):
    out = publish_service.upload_and_tag(db_session, fake_shopify, SHOP, image=to_data_url(b"jpeg"))

    assert out["imageUrl"] == "https://cdn.shopify.com/s/files/crop.jpg"
    assert "pinUrl" not in out
    assert "tags_add" not in fake_shopify.names()


def test_upload_and_tag_marks_published_and_builds_pin_url(db_session, fake_shopify):
    fake_shopify.products[PID] = dict(PRODUCT)

    out = publish_service.upload_and_tag(
        db_session, fake_shopify, SHOP,
        image=to_data_url(b"jpeg"), product_id=PID,
        url_mode="custom", custom_domain="https://gifts.example.com/",
    )

    assert ("tags_add", PID, ["Pinterest Published"]) in fake_shopify.calls
    row = repo.get_status(db_session, SHOP, PID)
    assert row.status == PIN_STATUS_PUBLISHED
    assert row.image_url == "https://cdn.shopify.com/s/files/crop.jpg"
    assert row.product_handle == "mala"

    qs = parse_qs(urlparse(out["pinUrl"]).query)
    assert qs["url"] == ["https://gifts.example.com/products/mala"]
    assert qs["media"] == ["https://cdn.shopify.com/s/files/crop.jpg"]
    assert qs["description"] == ["Hand made"]


def test_upload_requires_image(db_session, fake_shopify):
    with pytest.raises(ValidationError, match="No image provided"):
        publish_service.upload_and_tag(db_session, fake_shopify, SHOP)
    with pytest.raises(ValidationError, match="Invalid image format"):
        publish_service.upload_and_tag(db_session, fake_shopify, SHOP, image="data:image/jpeg;base64,")


# 服务端合成：下载原图 → 裁剪 → 用店铺设置里的水印
def test_upload_from_source_url_composites_with_stored_watermark(db_session, fake_shopify, monkeypatch):
    src = make_image_bytes(200, 300)
    monkeypatch.setattr(publish_service, "load_image_bytes", lambda url: src)
    update_shop_settings(db_session, SHOP, {"watermark": {"enabled": True, "src": to_data_url(make_image_bytes(8, 8), "image/png")}})

    seen = {}
    original = publish_service.get_cropped_image

    def spy(source, crop, rotation=0, flip=None, watermark=None, **kw):
        seen["crop"], seen["watermark"] = crop, watermark
        return original(source, crop, rotation, flip, watermark, **kw)

    monkeypatch.setattr(publish_service, "get_cropped_image", spy)

    publish_service.upload_and_tag(
        db_session, fake_shopify, SHOP,
        source_url="https://cdn/orig.jpg", crop={"x": 0, "y": 0, "width": 100, "height": 150},
    )
    assert seen["crop"].width == 100
    assert seen["watermark"] is not None and seen["watermark"].image


def test_mark_ignored_then_restore(db_session, fake_shopify):
    publish_service.mark_ignored(db_session, fake_shopify, SHOP, PID)
    assert repo.get_status(db_session, SHOP, PID).status == PIN_STATUS_IGNORED
    assert ("tags_add", PID, ["Pinterest Ignored"]) in fake_shopify.calls

    publish_service.restore_product(db_session, fake_shopify, SHOP, PID)
    assert ("tags_remove", PID, ["Pinterest Ignored"]) in fake_shopify.calls
    assert repo.get_status(db_session, SHOP, PID) is None


def test_mark_requires_product_id(db_session, fake_shopify):
    with pytest.raises(ValidationError):
        publish_service.mark_published(db_session, fake_shopify, SHOP, "")
