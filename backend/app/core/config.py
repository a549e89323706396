# 环境变量和配置
# pydantic‑settings 读取 .env = core/config.py

from typing import Literal, Optional
from pydantic import SecretStr, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# 本机直接跑 uvicorn 时（不走 Docker），才会用到 config.py 里的 model_config.env_file=".env"：
# 此时它会读取 backend/.env

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
    )

    # ========= project config =========
    PROJECT_NAME: str = "Pin Publish Hub"
    ENVIRONMENT: str = "dev"
    API_PREFIX: str = "/api/v1"
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173,https://admin.shopify.com"


    # ========= Database =========
    # 容器内默认连 docker 网络里的 "db" 服务；本地测试可以直接给 sqlite:///./pinpublish.db
    DATABASE_URL: str = Field(
        default="postgresql+psycopg://pp_user:pp_pass@db:5432/pinpublish_dev",
        alias="DATABASE_URL"
    )


    # ========= celery config =========
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None
    CELERY_TIMEZONE: str = "UTC"
    SYNC_TASKS_INLINE: bool = Field(default=True, alias="SYNC_TASKS_INLINE")   # True 时 pin 发布在请求线程内同步跑完


    # ========= Shopify API Config =========
    SHOPIFY_SHOP: str = Field("pin-publish-dev.myshopify.com", alias="SHOPIFY_SHOP")
    SHOPIFY_ADMIN_TOKEN: Optional[SecretStr] = Field(None, alias="SHOPIFY_ADMIN_TOKEN")            # 必须在运行时填上真实值
    SHOPIFY_API_VERSION: str = Field("2025-07", alias="SHOPIFY_API_VERSION")
    # App Bridge session token 校验（HS256，用 app secret 签名，aud = api key）
    SHOPIFY_API_KEY: Optional[str] = Field(None, alias="SHOPIFY_API_KEY")
    SHOPIFY_API_SECRET: Optional[SecretStr] = Field(None, alias="SHOPIFY_API_SECRET")

    # 网络/HTTP 层 配置
    SHOPIFY_HTTP_TIMEOUT: int = Field(30, alias="SHOPIFY_HTTP_TIMEOUT")
    SHOPIFY_UPLOAD_TIMEOUT: int = Field(120, alias="SHOPIFY_UPLOAD_TIMEOUT")

    # fileCreate 之后 URL 可能还没生成：固定次数轮询
    SHOPIFY_FILE_POLL_ATTEMPTS: int = Field(10, ge=1, le=60, alias="SHOPIFY_FILE_POLL_ATTEMPTS")
    SHOPIFY_FILE_POLL_INTERVAL_SEC: float = Field(1.0, ge=0, alias="SHOPIFY_FILE_POLL_INTERVAL_SEC")
    SHOPIFY_FILE_ALT: str = Field("Pinterest Cropped Image", alias="SHOPIFY_FILE_ALT")


    # ========= 商品状态标签 =========
    PIN_TAG_PUBLISHED: str = Field(default="Pinterest Published", alias="PIN_TAG_PUBLISHED")
    PIN_TAG_IGNORED: str = Field(default="Pinterest Ignored", alias="PIN_TAG_IGNORED")

    # 批量重置：单次最多处理多少个商品（无游标，调用方重复调用直到 remaining=false）
    TAG_RESET_LIMIT: int = Field(50, ge=1, le=250, alias="TAG_RESET_LIMIT")
    TAG_RESET_WORKERS: int = Field(8, ge=1, le=32, alias="TAG_RESET_WORKERS")
    PRODUCT_LIST_LIMIT: int = Field(50, ge=1, le=250, alias="PRODUCT_LIST_LIMIT")

    # 工作队列快照存哪：shop_settings（默认，和其它设置同一行）或 file（本地不连库调试，每店一个 JSON）
    QUEUE_SNAPSHOT_STORE: Literal["shop_settings", "file"] = Field("shop_settings", alias="QUEUE_SNAPSHOT_STORE")
    QUEUE_SNAPSHOT_DIR: str = Field(".pinpublish-sessions", alias="QUEUE_SNAPSHOT_DIR")


    # ========= Pinterest API Config =========
    PINTEREST_ACCESS_TOKEN: Optional[SecretStr] = Field(None, alias="PINTEREST_ACCESS_TOKEN")
    PINTEREST_BASE_URL: str = Field("https://api.pinterest.com/v5", alias="PINTEREST_BASE_URL")
    PINTEREST_HTTP_TIMEOUT: int = Field(30, alias="PINTEREST_HTTP_TIMEOUT")
    PINTEREST_MEDIA_POLL_INTERVAL_SEC: float = Field(1.0, ge=0, alias="PINTEREST_MEDIA_POLL_INTERVAL_SEC")
    # 默认不设上限（与线上行为一致）；配置后超过即抛 ProcessingTimeoutError
    PINTEREST_MEDIA_POLL_TIMEOUT_SEC: Optional[float] = Field(None, alias="PINTEREST_MEDIA_POLL_TIMEOUT_SEC")


    # ========= 图片合成 =========
    COMPOSITOR_JPEG_QUALITY: int = Field(92, ge=1, le=100, alias="COMPOSITOR_JPEG_QUALITY")
    SOURCE_IMAGE_TIMEOUT: int = Field(30, alias="SOURCE_IMAGE_TIMEOUT")
    PIN_DESCRIPTION_MAX_LEN: int = Field(490, alias="PIN_DESCRIPTION_MAX_LEN")


    @property
    def shopify_admin_token(self) -> Optional[str]:
        token = self.SHOPIFY_ADMIN_TOKEN
        if hasattr(token, "get_secret_value"):
            return token.get_secret_value()
        return token


settings = Settings()  # 只从环境读取（含 .env）
