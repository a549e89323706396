import json
from typing import Optional


# 新增一个简易转义器，确保 tag 放入 query 字符串安全
def escape_tag_for_query(tag: str) -> str:
    """转义 tag 供 Shopify 搜索字符串使用，并统一包裹双引号。"""
    value = json.dumps(tag or "")[1:-1]
    return f'"{value}"'


def gid_tail(gid: str) -> str:
    """gid://shopify/Collection/123 → 123"""
    return (gid or "").rstrip("/").rsplit("/", 1)[-1]


def build_products_search(
    *,
    include_tags: tuple = (),
    exclude_tags: tuple = (),
    status: Optional[str] = "active",
    collection_id: Optional[str] = None,
) -> str:
    """
    组装 products(query: ...) 的搜索串：
      published   → tag:"Pinterest Published" status:active
      unpublished → -tag:"Pinterest Published" -tag:"Pinterest Ignored" status:active
    """
    terms = [f"tag:{escape_tag_for_query(t)}" for t in include_tags]
    terms += [f"-tag:{escape_tag_for_query(t)}" for t in exclude_tags]
    if status:
        terms.append(f"status:{status}")
    if collection_id:
        terms.append(f"collection_id:{gid_tail(collection_id)}")
    return " ".join(terms)


# ---------------- Files：staged upload → fileCreate → 轮询 ----------------

STAGED_UPLOADS_CREATE = """
mutation stagedUploadsCreate($input: [StagedUploadInput!]!) {
  stagedUploadsCreate(input: $input) {
    stagedTargets {
      url
      resourceUrl
      parameters { name value }
    }
    userErrors { field message }
  }
}
""".strip()


FILE_CREATE = """
mutation fileCreate($files: [FileCreateInput!]!) {
  fileCreate(files: $files) {
    files {
      __typename
      id
      alt
      createdAt
      fileStatus
      ... on MediaImage { image { url } }
      ... on GenericFile { url }
    }
    userErrors { field message }
  }
}
""".strip()


FILE_NODE = """
query getFile($id: ID!) {
  node(id: $id) {
    __typename
    id
    ... on MediaImage { fileStatus image { url } }
    ... on GenericFile { fileStatus url }
  }
}
""".strip()


# ---------------- 商品 / 集合 ----------------

PRODUCT_DETAIL = """
query getProduct($id: ID!, $imagesFirst: Int!) {
  product(id: $id) {
    id
    title
    descriptionHtml
    onlineStoreUrl
    handle
    tags
    images(first: $imagesFirst) {
      nodes { id originalSrc: url altText }
    }
  }
}
""".strip()


PRODUCTS_LIST = """
query listProducts($first: Int!, $query: String!, $imagesFirst: Int!) {
  products(first: $first, query: $query) {
    nodes {
      id
      title
      descriptionHtml
      onlineStoreUrl
      handle
      tags
      images(first: $imagesFirst) {
        nodes { id originalSrc: url altText }
      }
    }
  }
}
""".strip()


COLLECTIONS_LIST = """
query getCollections($first: Int!) {
  collections(first: $first, sortKey: TITLE) {
    nodes { id title }
  }
}
""".strip()


# ---------------- 标签 ----------------

TAGS_ADD = """
mutation addTags($id: ID!, $tags: [String!]!) {
  tagsAdd(id: $id, tags: $tags) {
    node { id }
    userErrors { field message }
  }
}
""".strip()


TAGS_REMOVE = """
mutation removeTags($id: ID!, $tags: [String!]!) {
  tagsRemove(id: $id, tags: $tags) {
    node { id }
    userErrors { field message }
  }
}
""".strip()


PRODUCT_TAGS = """
query getTags($id: ID!) {
  product(id: $id) { id tags }
}
""".strip()


PRODUCT_UPDATE_TAGS = """
mutation updateTags($input: ProductInput!) {
  productUpdate(input: $input) {
    product { id tags }
    userErrors { field message }
  }
}
""".strip()
