
from fastapi import APIRouter, Depends
from app.services.auth_service import get_current_shop


# 非受保护路由
from .routes_health import router as health_router


# 需要 App Bridge session token 的受保护路由
from .upload import router as upload_router
from .products import router as products_router
from .product_status import router as product_status_router
from .settings import router as settings_router
from .pinterest import router as pinterest_router
from .queue import router as queue_router



api_v1 = APIRouter()
api_v1.include_router(health_router)      # /health 不需要登录

# --- 需要登录的接口 ---
protected = APIRouter(dependencies=[Depends(get_current_shop)])

protected.include_router(upload_router)
protected.include_router(products_router)
protected.include_router(product_status_router)
protected.include_router(settings_router)
protected.include_router(pinterest_router)
protected.include_router(queue_router)

# 把受保护路由注册进主路由
api_v1.include_router(protected)
