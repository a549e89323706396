
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from app.core.config import settings
from app.core.errors import PinPublishError, RemoteAPIError
from app.core.logging import configure_logging
from app.api.v1 import api_v1
from app.db.session import dispose_engine

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

# 从环境读取前端白名单（逗号分隔）。本地可配：
# BACKEND_CORS_ORIGINS=http://localhost:5173,https://admin.shopify.com
origins = [o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,     # 配成明确白名单（本地 http://localhost:5173，线上是 Shopify admin 内嵌页）
    allow_credentials=True,
    allow_methods=["GET","POST","PUT","PATCH","DELETE","OPTIONS"],
    allow_headers=["*"],
    )


# Origin 校验（仅对改数据方法）
TRUSTED = {o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()}

@app.middleware("http")
async def origin_check(request: Request, call_next):
    if request.method in {"POST", "PUT", "PATCH", "DELETE"}:
        origin = request.headers.get("origin")
        # 没有 Origin（如 curl/健康检查）则放行；有 Origin 但不在白名单里，才拒绝
        if origin and origin not in TRUSTED:
            return JSONResponse({"error": "Bad Origin"}, status_code=403)

    return await call_next(request)



# ---------- 统一错误信封：{"error": "..."}，校验类 400，其余 500 ----------
@app.exception_handler(PinPublishError)
async def pin_publish_error_handler(request: Request, exc: PinPublishError):
    if isinstance(exc, RemoteAPIError):
        logger.error("api.remote_error path=%s status=%s err=%s body=%s",
            request.url.path, exc.status, exc, (exc.body or "")[:500])
    else:
        logger.warning("api.error path=%s type=%s err=%s", request.url.path, type(exc).__name__, exc)
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": "Invalid request", "details": jsonable_encoder(exc.errors())}, status_code=400)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


app.include_router(api_v1, prefix=settings.API_PREFIX)


@app.on_event("shutdown")
def _shutdown() -> None:
    dispose_engine()


# 根路径健康探活（方便测试或 Docker 健康检查）
@app.get("/")
def root():
    return {
        "app": settings.PROJECT_NAME,
        "env": settings.ENVIRONMENT,
        "ok": True
    }
