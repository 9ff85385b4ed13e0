"""
Custom Exceptions
网关异常类型

会话内的可恢复错误都以具体异常类型表达，由调用方决定是上报给客户端还是记录后丢弃
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base error of the realtime gateway"""

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)


# ========== 配置异常 ==========


class ConfigurationError(GatewayError):
    """配置错误"""

    pass


class MissingConfigError(ConfigurationError):
    """缺少必需配置"""

    def __init__(self, config_key: str):
        super().__init__(f"Missing required configuration: {config_key}")
        self.config_key = config_key


# ========== 外部服务异常 ==========


class ExternalServiceError(GatewayError):
    """外部服务调用异常基类"""

    def __init__(self, service: str, message: str, details: Any = None):
        super().__init__(f"{service} error: {message}", details)
        self.service = service


class UpstreamConnectError(ExternalServiceError):
    """Opening the realtime provider connection failed (network or handshake)"""

    def __init__(self, message: str, details: Any = None):
        super().__init__("Upstream", message, details)


class TranslationError(ExternalServiceError):
    """Secondary translation provider failed or returned an unusable payload"""

    def __init__(self, message: str, provider: str | None = None, details: Any = None):
        super().__init__("Translation", message, details)
        self.provider = provider


# ========== 协议异常 ==========


class UpstreamProtocolError(GatewayError):
    """Provider sent a payload that cannot be parsed"""

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message, details=payload)
        self.payload = payload


class ClientProtocolError(GatewayError):
    """客户端帧不是结构化控制消息（按音频处理）"""

    pass


# ========== WebSocket 异常 ==========


class WebSocketError(GatewayError):
    """WebSocket 异常基类"""

    pass


class WebSocketSendError(WebSocketError):
    """WebSocket 发送失败"""

    pass
