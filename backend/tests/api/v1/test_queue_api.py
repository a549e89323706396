from app.repository.shop_settings_repo import get_shop_settings
from conftest import SHOP


API = "/api/v1/queue"


def _products():
    return [
        {"id": "gid://shopify/Product/1", "tags": [], "images": [{"url": "https://cdn/1a.jpg"}, {"url": "https://cdn/1b.jpg"}]},
        {"id": "gid://shopify/Product/2", "tags": [], "images": [{"url": "https://cdn/2a.jpg"}]},
    ]


def test_empty_queue_by_default(api_client):
    body = api_client.get(API).json()
    assert body["snapshot"]["state"] == "empty"
    assert body["currentProduct"] is None


# 完整一轮：load → 选图 → 上传 → 回填 → 下一张，快照存在 shop_settings 里
def test_full_cycle_persists_between_requests(api_client, fake_shopify, db_session):
    fake_shopify.listed = _products()

    body = api_client.post(f"{API}/load", json={}).json()
    assert body["snapshot"]["state"] == "product_selected"
    assert body["currentProduct"]["id"] == "gid://shopify/Product/1"

    body = api_client.post(f"{API}/select-image", json={"index": 0}).json()
    assert body["snapshot"]["state"] == "cropping"
    assert body["snapshot"]["is_modal_open"] is True

    api_client.post(f"{API}/begin-upload")
    body = api_client.post(f"{API}/upload-result", json={
        "productId": "gid://shopify/Product/1", "success": True, "pinUrl": "https://pin/1",
    }).json()
    assert body["applied"] is True
    assert body["snapshot"]["state"] == "uploaded"
    assert "Pinterest Published" in body["currentProduct"]["tags"]

    # 新请求 = 新 controller，从存储里恢复
    body = api_client.post(f"{API}/advance").json()
    assert body["snapshot"]["image_index"] == 1
    assert body["snapshot"]["state"] == "cropping"

    stored = get_shop_settings(db_session, SHOP)
    assert stored["pinpublish:state"] == '"cropping"'


def test_stale_upload_result_is_discarded(api_client, fake_shopify):
    fake_shopify.listed = _products()
    api_client.post(f"{API}/load", json={})
    api_client.post(f"{API}/select-image", json={"index": 0})
    api_client.post(f"{API}/begin-upload")
    api_client.post(f"{API}/select-product", json={"index": 1})

    body = api_client.post(f"{API}/upload-result", json={"productId": "gid://shopify/Product/1"}).json()
    assert body["applied"] is False
    assert body["currentProduct"]["id"] == "gid://shopify/Product/2"


def test_advance_past_end_completes_queue(api_client, fake_shopify):
    fake_shopify.listed = _products()[1:]
    api_client.post(f"{API}/load", json={})
    api_client.post(f"{API}/select-image", json={"index": 0})

    body = api_client.post(f"{API}/advance").json()
    assert body["queueComplete"] is True
    assert body["snapshot"]["state"] == "empty"


def test_load_uses_collection_filter(api_client, fake_shopify):
    api_client.post(f"{API}/preferences", json={"collectionFilter": "gid://shopify/Collection/5"})
    api_client.post(f"{API}/load", json={})
    _, search, _ = [c for c in fake_shopify.calls if c[0] == "list_products"][0]
    assert "collection_id:5" in search


def test_bad_index_is_400(api_client, fake_shopify):
    fake_shopify.listed = _products()
    api_client.post(f"{API}/load", json={})
    assert api_client.post(f"{API}/select-product", json={"index": 9}).status_code == 400
    assert api_client.post(f"{API}/select-image", json={"index": "x"}).status_code == 400


def test_preferences_validate_url_mode(api_client):
    resp = api_client.post(f"{API}/preferences", json={"urlMode": "weird"})
    assert resp.status_code == 400

    body = api_client.post(f"{API}/preferences", json={"urlMode": "custom", "customDomain": "https://x.example.com"}).json()
    assert body["snapshot"]["url_mode"] == "custom"
    assert body["snapshot"]["custom_domain"] == "https://x.example.com"
