# 导出入口：脚本 / 测试 直接 from app.db import ...

from typing import Optional

from sqlalchemy.engine import Engine

from .base import Base
from .session import SessionLocal, dispose_engine, engine, get_db, session_scope
from . import model  # noqa: F401  pinned_products / shop_settings 注册到 Base.metadata


'''
不走 Alembic 直接建表
   - 测试：传入内存 SQLite engine
   - 本地：python -c "from app.db import create_all; create_all()"
   - 线上一律 alembic upgrade head
'''
def create_all(bind: Optional[Engine] = None) -> None:
    Base.metadata.create_all(bind=bind or engine)


def drop_all(bind: Optional[Engine] = None) -> None:
    Base.metadata.drop_all(bind=bind or engine)
