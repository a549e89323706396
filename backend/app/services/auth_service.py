from dataclasses import dataclass

from fastapi import HTTPException, Request, status
from app.core.config import settings
from app.core.security import decode_session_token, shop_from_claims


@dataclass(slots=True)
class ShopContext:
    shop: str
    user_id: str | None = None


'''
获取当前店铺
    - 从 Authorization: Bearer <session token> 里拿到 token → decode_session_token(...)
    - 读出 dest 里的 myshopify 域名
    - 本地开发没配 SHOPIFY_API_SECRET 时，直接用配置里的 SHOPIFY_SHOP
'''
def get_current_shop(request: Request) -> ShopContext:
    secret = settings.SHOPIFY_API_SECRET
    if not secret:
        return ShopContext(shop=settings.SHOPIFY_SHOP)

    header = request.headers.get("authorization") or ""
    scheme, _, raw = header.partition(" ")
    if scheme.lower() != "bearer" or not raw:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    claims = decode_session_token(raw.strip())
    if not claims:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session token")

    shop = shop_from_claims(claims)
    if not shop:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session token missing shop")
    return ShopContext(shop=shop, user_id=claims.get("sub"))
