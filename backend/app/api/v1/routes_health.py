# 健康检查（含 DB 探活）

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import logging

from app.db.session import engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    # 轻量 DB ping（不依赖迁移）
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("health.db_failed err=%s", e)
        return JSONResponse({"status": "error", "error": "database unavailable"}, status_code=500)
    return {"status": "ok"}
