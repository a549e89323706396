"""
共用 fixture：内存 SQLite 会话 + 假 HTTP 响应 / 假 Shopify client
app 模块在 import 时就会读配置建 engine，所以环境变量必须在最前面设置。
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("SYNC_TASKS_INLINE", "true")
os.environ.setdefault("SHOPIFY_SHOP", "unit-test.myshopify.com")

import json
from typing import Any, Dict, Iterator, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.errors import RemoteAPIError
from app.db import create_all, drop_all
from app.integrations.shopify.payload_utils import FileNode


SHOP = "unit-test.myshopify.com"


# ---------- DB ----------
@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    create_all(engine)
    try:
        yield engine
    finally:
        drop_all(engine)
        engine.dispose()


@pytest.fixture()
def db_session(db_engine) -> Iterator[Session]:
    factory = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False, future=True)
    db = factory()
    try:
        yield db
    finally:
        db.close()


# ---------- HTTP ----------
class FakeResponse:
    """只实现被测代码用到的 requests.Response 属性。"""

    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None,
                 content: bytes = b"") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else (json.dumps(payload) if payload is not None else "")
        self.content = content

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeSession:
    """按顺序吐出预设响应，并记录每次调用。"""

    def __init__(self, responses: Optional[List[FakeResponse]] = None) -> None:
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def _next(self, call: Dict[str, Any]) -> FakeResponse:
        self.calls.append(call)
        if not self.responses:
            raise AssertionError(f"unexpected HTTP call: {call['method']} {call['url']}")
        return self.responses.pop(0)

    def post(self, url, **kwargs):
        return self._next({"method": "POST", "url": url, **kwargs})

    def get(self, url, **kwargs):
        return self._next({"method": "GET", "url": url, **kwargs})

    def request(self, method, url, **kwargs):
        return self._next({"method": method, "url": url, **kwargs})


@pytest.fixture()
def fake_session_factory():
    def _make(*responses: FakeResponse) -> FakeSession:
        return FakeSession(list(responses))
    return _make


# ---------- 假 Shopify client（服务层测试用） ----------
class FakeShopifyClient:

    def __init__(self) -> None:
        self.shop = SHOP
        self.calls: List[tuple] = []
        self.products: Dict[str, dict] = {}
        self.listed: List[dict] = []
        self.tags: Dict[str, List[str]] = {}
        self.fail_update_for: set = set()
        self.file_node = FileNode(kind="MediaImage", id="gid://shopify/MediaImage/1",
                                  url="https://cdn.shopify.com/s/files/crop.jpg", status="READY")
        self.polled_nodes: List[Optional[FileNode]] = []

    # 商品
    def get_product(self, product_id, *, images_first=20):
        self.calls.append(("get_product", product_id))
        return self.products.get(product_id)

    def list_products(self, search, *, first=50, images_first=10):
        self.calls.append(("list_products", search, first))
        return list(self.listed)[:first]

    def list_collections(self, *, first=250):
        self.calls.append(("list_collections",))
        return [{"label": "Gifts", "value": "gid://shopify/Collection/1"}]

    # 标签
    def tags_add(self, product_id, tags):
        self.calls.append(("tags_add", product_id, list(tags)))

    def tags_remove(self, product_id, tags):
        self.calls.append(("tags_remove", product_id, list(tags)))

    def get_product_tags(self, product_id):
        self.calls.append(("get_product_tags", product_id))
        return list(self.tags.get(product_id, []))

    def product_update_tags(self, product_id, tags):
        self.calls.append(("product_update_tags", product_id, list(tags)))
        if product_id in self.fail_update_for:
            raise RemoteAPIError(f"productUpdate userErrors for {product_id}")
        self.tags[product_id] = list(tags)
        return list(tags)

    # Files
    def staged_uploads_create(self, filename, mime_type, file_size):
        self.calls.append(("staged_uploads_create", filename, mime_type, file_size))
        return {
            "url": "https://storage.example.com/upload",
            "resourceUrl": "https://storage.example.com/upload/abc",
            "parameters": [{"name": "key", "value": "abc"}],
        }

    def upload_to_staged_target(self, target, content, filename, mime_type):
        self.calls.append(("upload_to_staged_target", target["url"], len(content)))

    def file_create(self, resource_url, *, alt=None):
        self.calls.append(("file_create", resource_url))
        return self.file_node

    def get_file(self, file_id):
        self.calls.append(("get_file", file_id))
        return self.polled_nodes.pop(0) if self.polled_nodes else None

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]


@pytest.fixture()
def fake_shopify() -> FakeShopifyClient:
    return FakeShopifyClient()


@pytest.fixture()
def no_sleep(monkeypatch):
    """把 time.sleep 换成记录器，返回每次 sleep 的秒数。"""
    import time as _time

    slept: List[float] = []
    monkeypatch.setattr(_time, "sleep", lambda s: slept.append(s))
    return slept


def make_image_bytes(width: int, height: int, color=(255, 0, 0, 255), fmt: str = "PNG") -> bytes:
    import io
    from PIL import Image

    mode = "RGBA" if fmt == "PNG" else "RGB"
    img = Image.new(mode, (width, height), color if mode == "RGBA" else color[:3])
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


# ---------- API ----------
class FakePinterestClient:

    def __init__(self) -> None:
        self.published: List[tuple] = []
        self.boards = [{"id": "board-1", "name": "Gifts"}]

    def list_boards(self):
        return list(self.boards)

    def publish_pin(self, board_id, title, description, link, image_bytes):
        self.published.append((board_id, title, description, link, image_bytes))
        return {"id": "pin-1"}


@pytest.fixture()
def fake_pinterest() -> FakePinterestClient:
    return FakePinterestClient()


@pytest.fixture()
def api_client(db_session, fake_shopify, fake_pinterest, monkeypatch):
    """TestClient：DB / 店铺 / 两个 client 全部走测试替身，任务同步执行。"""
    from contextlib import contextmanager

    from fastapi.testclient import TestClient

    from app.api.v1.deps import get_shopify_client
    from app.api.v1.pinterest import get_pinterest_client
    from app.db.session import get_db
    from app.main import app
    from app.orchestration.pin_publish import pin_publish_task
    from app.services.auth_service import ShopContext, get_current_shop

    @contextmanager
    def _scope():
        yield db_session

    monkeypatch.setattr(pin_publish_task.settings, "SYNC_TASKS_INLINE", True, raising=False)
    monkeypatch.setattr(pin_publish_task, "session_scope", _scope)
    monkeypatch.setattr(pin_publish_task, "ShopifyClient", lambda shop=None: fake_shopify)
    monkeypatch.setattr(pin_publish_task, "PinterestClient", lambda: fake_pinterest)

    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_current_shop] = lambda: ShopContext(shop=SHOP)
    app.dependency_overrides[get_shopify_client] = lambda: fake_shopify
    app.dependency_overrides[get_pinterest_client] = lambda: fake_pinterest
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
