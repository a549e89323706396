"""面向 Admin GraphQL 的轻量 Client, 只放和本模块强相关的方法"""
from __future__ import annotations

import time, logging, requests
from typing import Any, Dict, List, Optional
from requests import RequestException

from app.core.config import settings
from app.core.errors import RemoteAPIError, UploadError
from app.integrations.shopify.graphql_queries import (
    STAGED_UPLOADS_CREATE,
    FILE_CREATE,
    FILE_NODE,
    PRODUCT_DETAIL,
    PRODUCTS_LIST,
    COLLECTIONS_LIST,
    TAGS_ADD,
    TAGS_REMOVE,
    PRODUCT_TAGS,
    PRODUCT_UPDATE_TAGS,
)
from app.integrations.shopify.payload_utils import (
    FileNode,
    normalize_file_node,
    normalize_product,
    normalize_tags,
)


logger = logging.getLogger(__name__)


# ---------------- 基础：端点 & 认证 ----------------

# 统一GraphQL Admin API 入口: graphql.json 表示走 GraphQL Admin API
def _graphql_endpoint(shop: str) -> str:
    # 用 myshopify 域名 + 版本拼接 GraphQL Admin API 端点
    return f"https://{shop}/admin/api/{settings.SHOPIFY_API_VERSION}/graphql.json"


def _auth_headers(token: Optional[str]) -> dict:
    return {
        "Content-Type": "application/json",
        "X-Shopify-Access-Token": token or "",
        "User-Agent": "PinPublishHub/ShopifyClient (+python)",
    }


def _raise_user_errors(payload: Dict[str, Any], op_name: str) -> None:
    user_errors = payload.get("userErrors") or []
    if user_errors:
        logger.warning("shopify.graphql.user_errors op=%s errors=%s", op_name, user_errors)
        raise RemoteAPIError(f"{op_name} userErrors: {user_errors}", body=str(user_errors))



class ShopifyClient:

    def __init__(
        self,
        shop: Optional[str] = None,
        access_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.shop = shop or settings.SHOPIFY_SHOP
        self.access_token = access_token or settings.shopify_admin_token
        self._session = session or requests.Session()


    '''
    通用 GraphQL POST（带日志) 调用 Admin GraphQL 的公共逻辑
        - 统一 headers、json 负载、超时、HTTP 错误与 GraphQL 顶层 errors 处理
        - 返回完整 data（上层自己从 data[...] 取需要的节点）
        异常处理: 不做重试，非 2xx / 非 JSON / 顶层 errors 一律抛 RemoteAPIError（带响应体）
    '''
    def _post_graphql(
        self,
        query: str,
        variables: Optional[dict] = None,
        *,
        timeout: Optional[int] = None,
        op_name: str = "",   # 便于日志区分：例如 "stagedUploadsCreate" / "fileCreate"
    ) -> dict:

        timeout = timeout or getattr(settings, "SHOPIFY_HTTP_TIMEOUT", 30)
        payload = {"query": query, "variables": variables or {}}
        # 不打印 query 全文，避免日志过大/敏感；仅打 op_name / 变量键
        safe_vars_keys = list(payload["variables"].keys())

        start = time.perf_counter()
        try:
            resp = self._session.post(
                _graphql_endpoint(self.shop),
                headers=_auth_headers(self.access_token),
                json=payload,
                timeout=timeout,
            )
        except RequestException as e:
            latency_ms = int((time.perf_counter() - start) * 1000)
            logger.warning("shopify.graphql.request_exception op=%s latency_ms=%s err=%s",
                op_name, latency_ms, type(e).__name__)
            raise RemoteAPIError(f"{op_name} request failed: {e}") from e
        latency_ms = int((time.perf_counter() - start) * 1000)

        # HTTP 层错误
        if not (200 <= resp.status_code < 300):
            body = (resp.text or "")[:1000]
            logger.warning("shopify.graphql.http_error op=%s status=%s latency_ms=%s",
                op_name, resp.status_code, latency_ms)
            raise RemoteAPIError(
                f"{op_name} failed: HTTP {resp.status_code}", status=resp.status_code, body=body)

        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteAPIError(
                f"GraphQL response is not JSON: status={resp.status_code}",
                status=resp.status_code, body=(resp.text or "")[:1000]) from e

        # 顶层 GraphQL errors 直接视为硬错误（语法/权限问题）
        if data.get("errors"):
            logger.error("shopify.graphql.gql_errors op=%s latency_ms=%s errors=%s",
                op_name, latency_ms, data["errors"])
            raise RemoteAPIError(
                f"GraphQL top-level errors: {data['errors']}", status=resp.status_code, body=str(data["errors"]))

        logger.info("shopify.graphql.ok op=%s latency_ms=%s vars=%s", op_name, latency_ms, safe_vars_keys)
        return data


    # 基础连通性探测（便于本地先测 token/域名/版本是否正确）
    def ping(self) -> dict:
        q = """
        {
          shop {
            name
            myshopifyDomain
            plan { displayName }
          }
        }
        """.strip()
        return self._post_graphql(q, op_name="shop.ping")


    # ---------- 商品 / 集合 ----------
    def get_product(self, product_id: str, *, images_first: int = 20) -> Optional[dict]:
        data = self._post_graphql(
            PRODUCT_DETAIL,
            {"id": product_id, "imagesFirst": images_first},
            op_name="product.detail",
        )
        return normalize_product((data.get("data") or {}).get("product"))


    def list_products(self, search: str, *, first: int = 50, images_first: int = 10) -> List[dict]:
        """按搜索串拉一页商品（不翻页，最多 first 个）。"""
        data = self._post_graphql(
            PRODUCTS_LIST,
            {"first": max(1, int(first)), "query": search, "imagesFirst": images_first},
            op_name="products.list",
        )
        nodes = (((data.get("data") or {}).get("products") or {}).get("nodes")) or []
        return [p for p in (normalize_product(n) for n in nodes) if p]


    def list_collections(self, *, first: int = 250) -> List[dict]:
        data = self._post_graphql(COLLECTIONS_LIST, {"first": first}, op_name="collections.list")
        nodes = (((data.get("data") or {}).get("collections") or {}).get("nodes")) or []
        return [{"label": c.get("title"), "value": c.get("id")} for c in nodes]


    # ---------- 标签 ----------
    def tags_add(self, product_id: str, tags: List[str]) -> None:
        data = self._post_graphql(TAGS_ADD, {"id": product_id, "tags": tags}, op_name="tagsAdd")
        _raise_user_errors((data.get("data") or {}).get("tagsAdd") or {}, "tagsAdd")


    def tags_remove(self, product_id: str, tags: List[str]) -> None:
        data = self._post_graphql(TAGS_REMOVE, {"id": product_id, "tags": tags}, op_name="tagsRemove")
        _raise_user_errors((data.get("data") or {}).get("tagsRemove") or {}, "tagsRemove")


    def get_product_tags(self, product_id: str) -> List[str]:
        data = self._post_graphql(PRODUCT_TAGS, {"id": product_id}, op_name="product.tags")
        product = (data.get("data") or {}).get("product")
        if product is None:
            raise RemoteAPIError(f"product not found: {product_id}", status=404)
        return normalize_tags(product.get("tags"))


    def product_update_tags(self, product_id: str, tags: List[str]) -> List[str]:
        """整组覆盖商品标签（productUpdate），返回更新后的标签。"""
        data = self._post_graphql(
            PRODUCT_UPDATE_TAGS,
            {"input": {"id": product_id, "tags": tags}},
            op_name="productUpdate",
        )
        payload = (data.get("data") or {}).get("productUpdate") or {}
        _raise_user_errors(payload, "productUpdate")
        return normalize_tags((payload.get("product") or {}).get("tags", tags))


    # ---------- Files ----------
    def staged_uploads_create(self, filename: str, mime_type: str, file_size: int) -> dict:
        """
        申请临时上传目标，返回 {url, resourceUrl, parameters:[{name,value}]}
        """
        data = self._post_graphql(
            STAGED_UPLOADS_CREATE,
            {"input": [{
                "resource": "FILE",
                "filename": filename,
                "mimeType": mime_type,
                "fileSize": str(file_size),
                "httpMethod": "POST",
            }]},
            op_name="stagedUploadsCreate",
        )
        payload = (data.get("data") or {}).get("stagedUploadsCreate") or {}
        _raise_user_errors(payload, "stagedUploadsCreate")
        targets = payload.get("stagedTargets") or []
        if not targets:
            raise RemoteAPIError("stagedUploadsCreate returned no stagedTargets", body=str(payload))
        return targets[0]


    def upload_to_staged_target(self, target: dict, content: bytes, filename: str, mime_type: str) -> None:
        """
        multipart POST：先按返回顺序放 parameters，最后放 file 字段
        GCS 失败时常返回 XML，原样带进 UploadError 方便排查
        """
        fields = [(p.get("name"), p.get("value")) for p in (target.get("parameters") or [])]
        start = time.perf_counter()
        try:
            resp = self._session.post(
                target["url"],
                data=fields,
                files={"file": (filename, content, mime_type)},
                timeout=getattr(settings, "SHOPIFY_UPLOAD_TIMEOUT", 120),
            )
        except RequestException as e:
            raise UploadError(f"staged upload request failed: {e}") from e

        latency_ms = int((time.perf_counter() - start) * 1000)
        if not (200 <= resp.status_code < 300):
            body = resp.text or ""
            logger.warning("shopify.staged_upload.failed status=%s latency_ms=%s", resp.status_code, latency_ms)
            raise UploadError(
                f"Failed to upload to staging URL: {resp.status_code} - {body[:300]}",
                status=resp.status_code, body=body)
        logger.info("shopify.staged_upload.ok bytes=%s latency_ms=%s", len(content), latency_ms)


    def file_create(self, resource_url: str, *, alt: Optional[str] = None) -> FileNode:
        data = self._post_graphql(
            FILE_CREATE,
            {"files": [{
                "originalSource": resource_url,
                "alt": alt or settings.SHOPIFY_FILE_ALT,
                "contentType": "IMAGE",
            }]},
            op_name="fileCreate",
        )
        payload = (data.get("data") or {}).get("fileCreate") or {}
        _raise_user_errors(payload, "fileCreate")
        files = payload.get("files") or []
        node = normalize_file_node(files[0] if files else None)
        if node is None or not node.id:
            raise RemoteAPIError("fileCreate returned no file", body=str(payload))
        return node


    def get_file(self, file_id: str) -> Optional[FileNode]:
        data = self._post_graphql(FILE_NODE, {"id": file_id}, op_name="file.node")
        return normalize_file_node((data.get("data") or {}).get("node"))
