"""
Logging Configuration
日志配置 - 开发环境彩色输出，生产环境 JSON 行

使用方法:
    from gateway.core.logging import setup_logging
    setup_logging()
"""

from __future__ import annotations

import json
import sys
from typing import Any

from loguru import logger

from gateway.core.config import settings

# 不写入 JSON extra 的内部字段
_HIDDEN_EXTRA = ("color",)

# 从 extra 提升为顶层字段
_PROMOTED_EXTRA = ("connection_id",)


def json_serializer(record: dict) -> str:
    """Serialize a loguru record into one JSON line"""
    entry: dict[str, Any] = {
        "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
        "level": record["level"].name,
        "message": record["message"],
        "module": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    extra = dict(record["extra"] or {})
    for key in _PROMOTED_EXTRA:
        if key in extra:
            entry[key] = extra.pop(key)
    extra = {
        key: value
        for key, value in extra.items()
        if not key.startswith("_") and key not in _HIDDEN_EXTRA
    }
    if extra:
        entry["extra"] = extra

    exc = record["exception"]
    if exc:
        entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
            "traceback": "".join(exc.traceback.format()) if exc.traceback else None,
        }

    return json.dumps(entry, ensure_ascii=False, default=str)


def json_sink(message):
    """JSON 日志输出 sink"""
    sys.stderr.write(json_serializer(message.record) + "\n")
    sys.stderr.flush()


# 彩色格式 (开发环境)
COLORED_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging() -> None:
    """
    配置日志系统

    - development: 彩色格式输出到 stderr
    - production: JSON 格式输出到 stderr (便于日志收集)
    """
    logger.remove()

    if settings.ENVIRONMENT == "production":
        logger.add(
            json_sink,
            level=settings.LOG_LEVEL,
            backtrace=True,
            diagnose=False,  # 生产环境不显示变量值
        )
        logger.info("Logging configured", format="json", level=settings.LOG_LEVEL)
    else:
        logger.add(
            sys.stderr,
            level=settings.LOG_LEVEL,
            format=COLORED_FORMAT,
            backtrace=True,
            diagnose=True,
        )


def log_ws_event(
    event: str,
    connection_id: str,
    details: dict[str, Any] | None = None,
):
    """记录客户端连接生命周期事件"""
    extra = {"event": event, "connection_id": connection_id}
    if details:
        extra.update(details)
    logger.debug(f"WS {connection_id}: {event}", **extra)


def log_external_call(
    service: str,
    provider: str,
    duration_ms: float,
    success: bool,
    error: str | None = None,
):
    """记录外部服务调用日志"""
    level = "info" if success else "warning"
    getattr(logger, level)(
        f"External call: {service}/{provider}",
        service=service,
        provider=provider,
        duration_ms=round(duration_ms, 2),
        success=success,
        error=error,
    )


def connection_logger(connection_id: str):
    """Logger bound to one client connection"""
    return logger.bind(connection_id=connection_id)
