from typing import Any, Optional
from urllib.parse import urlparse

from jose import jwt, JWTError
from app.core.config import settings


ALGORITHM = "HS256"


'''
校验 App Bridge 下发的 session token
  - Shopify 用 app secret 做 HS256 签名，aud 是 app 的 api key
  - dest 形如 https://xxx.myshopify.com，就是当前请求所属店铺
  - 校验失败一律返回 None，由上层决定 401
'''
def decode_session_token(token: str) -> Optional[dict[str, Any]]:
    secret = settings.SHOPIFY_API_SECRET
    if hasattr(secret, "get_secret_value"):
        secret = secret.get_secret_value()
    if not secret:
        return None

    options = {"verify_aud": bool(settings.SHOPIFY_API_KEY)}
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            audience=settings.SHOPIFY_API_KEY,
            options=options,
        )
    except JWTError:
        return None


def shop_from_claims(claims: dict[str, Any]) -> Optional[str]:
    dest = claims.get("dest") or ""
    host = urlparse(dest).netloc if "://" in dest else dest
    return host or None
