# 日志：uvicorn / celery worker / 脚本 共用一套 root 配置

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# 第三方库的 DEBUG 太吵（PIL 逐 chunk 打印、urllib3 逐连接打印）
NOISY_LOGGERS = ("PIL", "urllib3", "multipart")


'''
配置 root logger
   - uvicorn 启动时已经挂了 handler：只改级别
   - celery worker / 脚本 没有 handler：basicConfig 输出到 stdout
   - 可以重复调用（main.py 和 celery_app.py 都会调）
'''
def configure_logging(level: Optional[str] = None) -> logging.Logger:
    resolved = (level or DEFAULT_LEVEL).upper()
    root = logging.getLogger()

    if root.handlers:
        root.setLevel(resolved)
    else:
        logging.basicConfig(level=resolved, format=LOG_FORMAT, handlers=[logging.StreamHandler(sys.stdout)])

    floor = max(logging.INFO, root.level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(floor)

    logging.captureWarnings(True)
    return logging.getLogger("app")
