"""
Exception Handlers
全局异常处理器，将网关异常转换为 HTTP 响应

WebSocket 会话内的错误不经过这里，由 ClientLink 转成 error 事件
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from gateway.core.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    GatewayError,
    TranslationError,
)


def register_exception_handlers(app: FastAPI) -> None:
    """注册全局异常处理器"""

    @app.exception_handler(TranslationError)
    async def translation_error_handler(request: Request, exc: TranslationError):
        logger.error(f"Translation Service Error: {exc.message}", provider=exc.provider)
        return JSONResponse(
            status_code=502,
            content={
                "detail": exc.message,
                "service": "translation",
                "provider": exc.provider,
            },
        )

    @app.exception_handler(ExternalServiceError)
    async def external_service_handler(request: Request, exc: ExternalServiceError):
        logger.error(f"External Service Error: {exc.message}", service=exc.service)
        return JSONResponse(
            status_code=502,
            content={"detail": exc.message, "service": exc.service},
        )

    @app.exception_handler(ConfigurationError)
    async def config_error_handler(request: Request, exc: ConfigurationError):
        logger.error(f"Configuration Error: {exc.message}")
        return JSONResponse(
            status_code=500,
            content={"detail": exc.message},
        )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        """兜底处理所有 GatewayError"""
        logger.error(f"Gateway Error: {exc.message}")
        return JSONResponse(
            status_code=500,
            content={"detail": exc.message},
        )
