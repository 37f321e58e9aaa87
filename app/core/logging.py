# app/core/logging.py
import logging
import sys

import structlog

_PLAIN_FMT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _json_formatter() -> logging.Formatter:
    """标准库 logging 记录交给 structlog 渲染成一行 JSON（便于容器日志采集）。"""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.format_exc_info,
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
    )


def setup_logging(level: str = "INFO", json: bool = False) -> None:
    """
    统一日志入口（API 进程 / CLI / 定时任务共用）：
    - 根 logger 设级别
    - 单一 stdout handler，避免重复输出
    - json=True 时由 structlog 输出 JSON 行
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    # 清已有 handlers，避免重复
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_json_formatter() if json else logging.Formatter(_PLAIN_FMT))
    root.addHandler(handler)

    # 物流 API 每次请求都会打 INFO，收敛到 WARNING
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if level.upper() == "DEBUG" else logging.WARNING
    )
