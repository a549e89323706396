# Celery 应用：Pinterest 直发（长轮询）放到 worker 上跑

from celery import Celery
from kombu import Exchange, Queue
from app.core.config import settings
from app.core.logging import configure_logging

configure_logging()


'''
初始化 Celery 应用/实例
   - SYNC_TASKS_INLINE=True（本地默认）时任务在请求线程里直接跑，不需要 broker
   - Worker: 1 台即可，Pinterest 的媒体轮询是慢 I/O
'''
celery_app = Celery(
    "pin_publish_hub",
    broker=settings.CELERY_BROKER_URL,          # 队列位置
    backend=settings.CELERY_RESULT_BACKEND,     # 结果存储
    include=[
        # include 告诉 Celery 这些模块里定义的任务函数要自动注册
        "app.orchestration.pin_publish.pin_publish_task",       # Pinterest 直发
    ],
)


'''
  通用 Celery 配置
'''
celery_app.conf.update(
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=True,                             # 内部还是存 UTC
    task_serializer="json",                      # 序列化格式 JSON（图片走 data URL）
    accept_content=["json"],
    result_serializer="json",
    task_track_started=True,                     # 任务启动时标记 started
    broker_connection_retry_on_startup=True,     # 启动时如果 broker 挂了会重试
    # === 容错和超时控制 ===
    worker_prefetch_multiplier=1,    # 一个 worker 一次只取一个任务
    task_acks_late=False,            # pin 创建不是幂等的：worker crash 后不重投，避免重复发 pin
    broker_heartbeat=30,
    broker_pool_limit=10,
)


'''
队列拆分
   - default: 其它
   - pinterest: 发 pin（每个任务要等媒体处理完，单独 worker 消费，不堵 default）
'''
celery_app.conf.task_queues = (
    Queue("default", Exchange("default"), routing_key="default"),
    Queue("pinterest", Exchange("pinterest"), routing_key="pinterest"),
)
celery_app.conf.task_default_queue = "default"


celery_app.conf.task_routes = {
    "app.orchestration.pin_publish.publish_pin": {"queue": "pinterest"},
}
