from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


def normalize_tags(value: Any) -> List[str]:
    """
    将 Shopify 返回的标签（通常为 list[str]）归一化为字符串列表。
    对于逗号分隔的字符串等异常形式也做兼容处理。
    """
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if isinstance(v, str) and str(v).strip()]
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return []


def normalize_product(node: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    products / product 节点 → 前端用的扁平结构：
      images: [{id, originalSrc, altText}]，image: 第一张图的 URL（没有则 None）
    """
    if not node:
        return None
    product = dict(node)
    images = product.get("images")
    if isinstance(images, dict):
        images = images.get("nodes") or []
    product["images"] = [img for img in (images or []) if isinstance(img, dict)]
    product["image"] = product["images"][0].get("originalSrc") if product["images"] else None
    product["tags"] = normalize_tags(product.get("tags"))
    return product


@dataclass(slots=True)
class FileNode:
    """fileCreate / node(id) 返回的 MediaImage | GenericFile 统一成一个形状。"""
    kind: str
    id: Optional[str]
    url: Optional[str]
    status: Optional[str]


def normalize_file_node(node: Optional[Dict[str, Any]]) -> Optional[FileNode]:
    if not node:
        return None
    kind = node.get("__typename") or ""
    if kind == "MediaImage":
        url = (node.get("image") or {}).get("url")
    elif kind == "GenericFile":
        url = node.get("url")
    else:
        # 没带 __typename 时两种形状都试一下
        url = (node.get("image") or {}).get("url") or node.get("url")
    return FileNode(
        kind=kind,
        id=node.get("id"),
        url=url or None,
        status=node.get("fileStatus"),
    )
